"""
Entry point for running the API as a module: python -m taxsim.api
"""
import logging

from .app import app, HOST, PORT

if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app.run(host=HOST, port=PORT, debug=False)
