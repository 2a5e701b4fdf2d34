#!/usr/bin/env python3
"""Development server runner for the chess tournament manager."""

import os
import sys
from pathlib import Path

from dotenv import load_dotenv


def setup_environment():
    """Set up the development environment."""
    project_root = Path(__file__).parent
    sys.path.insert(0, str(project_root))

    env_file = project_root / '.env'
    if env_file.exists():
        load_dotenv(env_file)
        print(f"Loaded environment from {env_file}")
    else:
        print(f"No .env file found at {env_file}")

    os.environ.setdefault('FLASK_APP', 'chessmgr:create_app')
    os.environ.setdefault('FLASK_DEBUG', '1')


def run_development_server():
    """Run the Flask development server."""
    from chessmgr import create_app

    app = create_app()

    print("\n" + "=" * 60)
    print("Starting chess tournament manager")
    print("=" * 60)
    print(f"Database: {app.config['SQLALCHEMY_DATABASE_URI']}")
    print(f"Scheduler: {'on' if app.config.get('SCHEDULER_ENABLED') else 'off'} "
          f"(every {app.config.get('SCHEDULER_INTERVAL_SECONDS')}s)")
    print("\nAPI available at http://localhost:5000/api")
    print("\nTo create an administrator, run in another terminal:")
    print("   flask --app chessmgr user create-admin "
          "--name Admin --email admin@example.com --password changeme")
    print("\nPress Ctrl+C to stop the server")
    print("=" * 60)

    # Sweep right away instead of waiting for the first request
    if app.config.get('SCHEDULER_ENABLED'):
        app.extensions['tournament_scheduler'].start()

    # The reloader would start a second scheduler thread in the parent process
    app.run(host='0.0.0.0', port=5000, debug=True, use_reloader=False)


def main():
    setup_environment()
    try:
        run_development_server()
    except KeyboardInterrupt:
        print("\nDevelopment server stopped by user")


if __name__ == "__main__":
    main()
