from flask import Flask
from flask_migrate import Migrate
from .extensions import db, login_manager, rq
from .errors import Unauthorized, register_error_handlers

migrate = Migrate()

def create_app(config_object='config.Config'):
    """App factory. Tests pass ``config.TestConfig``."""
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    rq.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        from .models.user import User
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        # JSON API: no login page to redirect to
        raise Unauthorized("Unauthorized")

    register_error_handlers(app)

    from .blueprints.auth import bp as auth_bp
    from .blueprints.admin import bp as admin_bp
    from .blueprints.role_requests import bp as role_requests_bp
    from .blueprints.certificates import bp as certificates_bp
    from .blueprints.credentials import bp as credentials_bp
    from .blueprints.org import bp as org_bp

    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(admin_bp, url_prefix="/api/admin")
    app.register_blueprint(role_requests_bp, url_prefix="/api/role-requests")
    app.register_blueprint(certificates_bp, url_prefix="/api/certificates")
    app.register_blueprint(credentials_bp, url_prefix="/api/credentials")
    app.register_blueprint(org_bp, url_prefix="/api/organizations")

    @app.get('/health')
    def health():
        return {"ok": True}

    return app
