from cashdesk import create_app

app = create_app()
