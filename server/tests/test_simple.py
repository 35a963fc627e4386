"""Import smoke tests: the app builds and every table is registered."""


def test_create_app():
    from darshan.main import create_app

    app = create_app()
    assert app.title == "Smart Darshan API"
    assert app.state.change_feed.subscriber_count() == 0


def test_models_register_every_table():
    from darshan.core.database import Base
    import darshan.models  # noqa: F401

    assert {
        "temples",
        "bookings",
        "queue_status",
        "crowd_data",
        "parking_data",
        "traffic_data",
        "payment_transactions",
        "notifications",
        "emergency_incidents",
        "user_roles",
    } <= set(Base.metadata.tables)
