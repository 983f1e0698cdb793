# sync_platform/__init__.py
# PrefSync - platform package: config, session store, merge engine, client

