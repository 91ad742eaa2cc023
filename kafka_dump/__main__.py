"""Allow ``python -m kafka_dump``."""

from kafka_dump.cli.dump import dump_topic

if __name__ == "__main__":
    dump_topic()
