# packshift/semver/__init__.py
