# check_connections.py
"""
Check that the database and the event broker are reachable.
"""

import sys

from kombu import Connection
from sqlalchemy import create_engine, text

from anchor_incidents.config.app_config import get_app_config, get_event_config
from anchor_incidents.database import engine_options


def check_database(database_url: str) -> bool:
    try:
        engine = create_engine(database_url, **engine_options(database_url))
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print(f"✅ Database: connected ({engine.url.render_as_string(hide_password=True)})")
        return True
    except Exception as e:
        print(f"❌ Database: error - {e}")
        return False


def check_broker(broker_url: str) -> bool:
    try:
        with Connection(broker_url, connect_timeout=2) as conn:
            conn.ensure_connection(max_retries=1)
        print(f"✅ Event broker: connected ({broker_url})")
        return True
    except Exception as e:
        print(f"❌ Event broker: error - {e}")
        return False


if __name__ == "__main__":
    print("=" * 60)
    print("CHECKING CONNECTIONS")
    print("=" * 60)

    ok = check_database(get_app_config()["database_url"])

    event_config = get_event_config()
    if event_config["publisher"] == "kombu":
        ok = check_broker(event_config["broker_url"]) and ok
    else:
        print(f"ℹ️  Event broker: skipped (EVENT_PUBLISHER={event_config['publisher']})")

    print("=" * 60)
    sys.exit(0 if ok else 1)
