from flask import Blueprint

bp = Blueprint("core", __name__)
api_bp = Blueprint("core_api", __name__)
# маршруты подтягивает app.register_blueprints (import_module), не здесь:
# errors/locks импортируются из extensions ещё до создания db
