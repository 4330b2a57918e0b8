#!/usr/bin/env python3
"""
Simple script to run the Flask webapp
"""

from trainingsplan.app import APP_CONFIG, app

if __name__ == '__main__':
    app.run(debug=APP_CONFIG.debug, host='0.0.0.0', port=5555)
