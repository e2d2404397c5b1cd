from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_wtf import CSRFProtect

from blueprints.auth.credentials import CredentialStore
from blueprints.notifications.events import EventBus

db = SQLAlchemy()
csrf = CSRFProtect()
migrate = Migrate()
login_manager = LoginManager()

# два независимых хранилища: коды регистрации и сброс пароля
signup_otps = CredentialStore("signup")
reset_credentials = CredentialStore("password_reset")

events = EventBus()
