# packshift/manifest/__init__.py
