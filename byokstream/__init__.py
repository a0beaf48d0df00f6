from flask import Flask
from .views import register_blueprints
from dotenv import load_dotenv

def create_app(config=None):
    load_dotenv()
    app = Flask(__name__)
    app.config.from_object('byokstream.config.Config')
    app.config.from_prefixed_env()
    if config:
        app.config.update(config)

    register_blueprints(app)

    return app
