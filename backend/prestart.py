import asyncio
from inchforward.core.database import init_db

async def main():
    print("Running database initialization...")
    try:
        await init_db()
        print("Tables goals, moves and daily_progress checked/created successfully.")
    except Exception as e:
        print(f"Initialization error: {e}")
        raise SystemExit(1)

if __name__ == "__main__":
    asyncio.run(main())
