"""
Flask application for the Contract Shield API.
"""
from contract_shield.application import create_app

app = create_app()

if __name__ == '__main__':
    app.run(debug=False)
