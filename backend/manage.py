import sys
from duochat import create_app, db, socketio
from duochat import models  # noqa: F401  (registers the tables)

# Create an app instance
app = create_app()


def init_db():
    # The 'app_context' is needed for SQLAlchemy to know which app it's working with
    with app.app_context():
        print("Creating all database tables...")
        db.create_all()
        print("Done!")


if __name__ == '__main__':
    command = sys.argv[1] if len(sys.argv) > 1 else 'run'
    if command == 'init-db':
        init_db()
    elif command == 'run':
        init_db()
        socketio.run(app, host='0.0.0.0', port=app.config['PORT'],
                     allow_unsafe_werkzeug=app.config['APP_ENV'] != 'production')
    else:
        print(f"Unknown command: {command} (expected 'init-db' or 'run')")
        sys.exit(2)
