# run.py
import os
from lunaexecutor import create_app, socketio

app = create_app()

if __name__ == '__main__':
    socketio.run(
        app,
        host=os.getenv('API_HOST', '127.0.0.1'),
        port=int(os.getenv('API_PORT', 5000)),
        debug=os.getenv('FLASK_DEBUG') == '1',
    )
