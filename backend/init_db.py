"""Initialize database with sample alumni."""
import sys
from sqlalchemy.orm import Session
from alumni_chat.database import SessionLocal, engine, Base
from alumni_chat.models import User
from alumni_chat.middleware.auth import create_user_with_api_key

SAMPLE_ALUMNI = [
    {"name": "Ananya Rao", "email": "ananya@example.org", "batch": "2016", "branch": "Computer Science", "api_key": "demo-key-ananya"},
    {"name": "Vikram Shah", "email": "vikram@example.org", "batch": "2018", "branch": "Mechanical", "api_key": "demo-key-vikram"},
    {"name": "Meera Iyer", "email": "meera@example.org", "batch": "2020", "branch": "Electronics", "api_key": "demo-key-meera"},
]


def init_database():
    """Create tables and seed a few alumni with known API keys."""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)

    db: Session = SessionLocal()

    try:
        if db.query(User).first():
            print("✓ Database already initialized")
            return

        for alumnus in SAMPLE_ALUMNI:
            profile = dict(alumnus)
            name = profile.pop("name")
            api_key = profile.pop("api_key")
            user, _ = create_user_with_api_key(db, name, api_key=api_key, **profile)
            print(f"✓ Created {name} ({user.id}) with API key: {api_key}")

        print("\n" + "="*50)
        print("✓ Database initialized successfully!")
        print("="*50)
        print("Open a conversation with curl:")
        print('  curl -X POST -H "x-api-key: demo-key-ananya" -H "Content-Type: application/json" \\')
        print('       -d \'{"recipient_id": "<user id>"}\' http://localhost:8000/api/chat/conversations')
        print("\n" + "="*50)

    except Exception as e:
        print(f"✗ Error initializing database: {e}")
        db.rollback()
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    init_database()
