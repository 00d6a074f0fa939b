from app.fjv import create_app

app = create_app()
