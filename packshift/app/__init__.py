# packshift/app/__init__.py
