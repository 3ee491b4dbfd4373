from urp.cli.app import app

app()
