from requestgen.cli import app

app()
