from sonar_ingest.cli import cli

cli(prog_name="sonar-ingest")
