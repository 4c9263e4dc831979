"""Flask 入口：创建应用、注册蓝图、初始化数据库与登录管理。

本地运行：
    python app.py
批量重算 BCI：
    python -m core.recalculate
"""

from flask import Flask
from flask_login import LoginManager

from config import Config
from models import db, User


def create_app(config_object=Config) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.json.ensure_ascii = False

    db.init_app(app)

    # Ensure core tables exist when running via `flask run` (tolerate missing DB in dev)
    try:
        with app.app_context():
            db.create_all()
    except Exception as exc:
        app.logger.warning("Skipping db.create_all during startup: %s", exc)

    login_manager = LoginManager()
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        """Flask-Login 回调：根据 user_id 取出用户对象。"""
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        # 纯 JSON 接口：不重定向到登录页
        from app_services import api_error

        return api_error("请先登录", code=401, http_status=401)

    from app_routes import admin_bp, api_bp, auth_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(api_bp)
    app.register_blueprint(admin_bp)

    return app


if __name__ == "__main__":
    create_app().run(debug=True)
