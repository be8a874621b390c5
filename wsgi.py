"""
WSGI entry point — `app` for a WSGI server, or run directly for local dev.
"""
from leadgen import create_app

app = create_app()

if __name__ == '__main__':
    import os
    app.run(host='0.0.0.0', port=int(os.getenv('PORT', 8080)))
