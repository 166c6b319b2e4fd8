"""ScoutID identity synchronization package.

To use the Flask app:
    from scoutid.flask_app import create_app

To run a login and profile sync from code:
    from scoutid.core.login_service import LoginService
"""
# Note: We don't import flask_app by default to avoid Flask dependency
# for CLI scripts that only use scoutid.core

__version__ = "1.5.0"
