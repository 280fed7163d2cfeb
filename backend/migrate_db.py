import asyncio
import asyncpg
import urllib.parse
from inchforward.core.config import settings

async def migrate():
    print("🔄 Starting database SCHEMA CHECK & REPAIR...")
    if "postgresql" not in settings.DATABASE_URL:
        print("ℹ️  Not a Postgres database, run prestart.py instead.")
        return

    try:
        db_url = settings.DATABASE_URL.replace("postgresql+asyncpg://", "postgresql://").replace("+asyncpg", "")
        parsed = urllib.parse.urlparse(db_url)
        query_params = urllib.parse.parse_qs(parsed.query)

        if 'sslmode' in query_params: del query_params['sslmode']
        if 'channel_binding' in query_params: del query_params['channel_binding']

        new_query = urllib.parse.urlencode(query_params, doseq=True)
        clean_url = urllib.parse.urlunparse(parsed._replace(query=new_query))

        print(f"🔌 Connecting to database...")
        conn = await asyncpg.connect(clean_url, ssl='require')

        print("🛠️  Checking 'goals' table...")
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS goals (
                id SERIAL PRIMARY KEY,
                public_id VARCHAR UNIQUE,
                title TEXT NOT NULL DEFAULT '',
                description TEXT,
                estimated_time_to_complete DOUBLE PRECISION,
                created_at TIMESTAMP DEFAULT NOW(),
                is_completed BOOLEAN NOT NULL DEFAULT false,
                completion_date TIMESTAMP
            );
        """)
        await conn.execute("ALTER TABLE goals ADD COLUMN IF NOT EXISTS estimated_time_to_complete DOUBLE PRECISION;")
        await conn.execute("ALTER TABLE goals ADD COLUMN IF NOT EXISTS completion_date TIMESTAMP;")

        print("🛠️  Checking 'moves' table...")
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS moves (
                id SERIAL PRIMARY KEY,
                public_id VARCHAR UNIQUE,
                goal_id INTEGER NOT NULL REFERENCES goals(id) ON DELETE CASCADE,
                title TEXT NOT NULL DEFAULT '',
                description TEXT,
                estimated_duration DOUBLE PRECISION NOT NULL DEFAULT 300 CHECK (estimated_duration > 0),
                category VARCHAR(10) NOT NULL DEFAULT 'planning',
                is_default_move BOOLEAN NOT NULL DEFAULT false,
                created_at TIMESTAMP DEFAULT NOW()
            );
        """)
        await conn.execute("ALTER TABLE moves ADD COLUMN IF NOT EXISTS is_default_move BOOLEAN NOT NULL DEFAULT false;")
        await conn.execute("ALTER TABLE moves ADD COLUMN IF NOT EXISTS created_at TIMESTAMP DEFAULT NOW();")

        print("🛠️  Checking 'daily_progress' table...")
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS daily_progress (
                id SERIAL PRIMARY KEY,
                public_id VARCHAR UNIQUE,
                goal_id INTEGER NOT NULL REFERENCES goals(id) ON DELETE CASCADE,
                move_id INTEGER REFERENCES moves(id) ON DELETE SET NULL,
                date TIMESTAMP NOT NULL DEFAULT NOW(),
                was_skipped BOOLEAN NOT NULL DEFAULT false,
                notes TEXT
            );
        """)
        await conn.execute("ALTER TABLE daily_progress ADD COLUMN IF NOT EXISTS notes TEXT;")

        await conn.execute("CREATE INDEX IF NOT EXISTS idx_goals_public_id ON goals(public_id);")
        await conn.execute("CREATE INDEX IF NOT EXISTS idx_moves_goal_id ON moves(goal_id);")
        await conn.execute("CREATE INDEX IF NOT EXISTS idx_daily_progress_goal_date ON daily_progress(goal_id, date);")

        try:
            await conn.execute("CREATE EXTENSION IF NOT EXISTS \"pgcrypto\";")
            for table in ("goals", "moves", "daily_progress"):
                await conn.execute(f"UPDATE {table} SET public_id = gen_random_uuid()::text WHERE public_id IS NULL;")
        except asyncpg.PostgresError:
            print("⚠️ 'pgcrypto' extension not available. Using MD5 fallback for existing IDs.")
            for table in ("goals", "moves", "daily_progress"):
                await conn.execute(f"UPDATE {table} SET public_id = md5(random()::text || clock_timestamp()::text) WHERE public_id IS NULL;")

        await conn.close()
        print("\n✅ Database schema is up to date!")

    except (OSError, asyncpg.PostgresError) as e:
        print(f"\n❌ Migration Failed: {e}")
        raise SystemExit(1)

if __name__ == "__main__":
    asyncio.run(migrate())
