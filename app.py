from dotenv import load_dotenv
load_dotenv()
from flask import Flask
from flask_compress import Compress
from flask_cors import CORS

from airmap.config import Settings
from airmap.services import build_services
from routes import bp as main_bp
from routes_predict import predict_bp


def create_app(settings=None, services=None):
    if services is not None and settings is not None:
        raise ValueError("Pass either settings or services to create_app, not both.")
    app = Flask(__name__)
    Compress(app)
    CORS(app)
    if services is None:
        services = build_services(settings or Settings.from_env())
    app.extensions["airmap"] = services
    app.register_blueprint(main_bp)
    app.register_blueprint(predict_bp)
    return app


if __name__ == '__main__':
    create_app().run(host="0.0.0.0", port=5001, debug=False)
