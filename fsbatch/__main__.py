from fsbatch.cli.main import run

run()
