# Overview: Flask extension instances for database, migrations, and the open-rental feed.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from .feed import RentalFeed

db = SQLAlchemy()
migrate = Migrate()
rental_feed = RentalFeed()
