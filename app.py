from flask import Flask, request, jsonify
from flask_migrate import Migrate
from flask_cors import CORS
import os
import logging
from routes.bookings import bookings_bp
from routes.jobcards import jobcards_bp
from routes.invoices import invoices_bp
from database.db import db
from utils.auth import require_principal
from utils.errors import WorkflowError
from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

migrate = Migrate()

def create_app(config=None):
    app = Flask(__name__)

    # Configure CORS with environment-specific origins
    allowed_origins = os.environ.get('ALLOWED_ORIGINS', '*').split(',')
    CORS(app,
         resources={r"/*": {"origins": allowed_origins}},
         allow_headers=["Content-Type", "Authorization"],
         methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    )

    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY')
    app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL')
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['TOKEN_EXPIRES_IN'] = int(os.environ.get('TOKEN_EXPIRES_IN', '3600'))
    if config:
        app.config.update(config)

    if not app.config['SECRET_KEY']:
        raise ValueError("SECRET_KEY environment variable is required")
    if not app.config['SQLALCHEMY_DATABASE_URI']:
        raise ValueError("DATABASE_URL environment variable is required")

    db.init_app(app)
    migrate.init_app(app, db)

    # Every model has to be mapped before the first query
    from models import accounts, bookings, business, finances, job  # noqa: F401

    @app.before_request
    def log_request():
        logger.debug("%s %s (origin: %s)", request.method, request.path, request.headers.get('Origin'))

    @app.errorhandler(WorkflowError)
    def handle_workflow_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.route('/')
    def index():
        return "Vehicle service workflow API is running."

    @app.route('/whoami', methods=['GET'])
    @require_principal()
    def whoami(principal):
        return jsonify({"user_id": principal.user_id, "role": principal.role.value})

    app.register_blueprint(bookings_bp, url_prefix='/bookings')
    app.register_blueprint(jobcards_bp, url_prefix='/jobcards')
    app.register_blueprint(invoices_bp, url_prefix='/invoices')

    return app

if __name__ == '__main__':
    create_app().run(host='0.0.0.0', port=5000, debug=os.environ.get('FLASK_ENV') == 'development')
