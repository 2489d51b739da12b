import os
from pymongo.mongo_client import MongoClient
from pymongo.server_api import ServerApi
from dotenv import load_dotenv

from portfolio_tracker.mongo_collections import CREDENTIALS

load_dotenv()  # reads .env in project root
uri = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
db_name = os.getenv("MONGODB_DB", "smartapi")
print("Using URI:", uri[:40] + "...")  # don’t dump whole secret to console

client = MongoClient(uri, server_api=ServerApi("1"))
try:
    client.admin.command("ping")
    print("✅ Pinged your deployment. You successfully connected to MongoDB!")
    count = client[db_name][CREDENTIALS].count_documents({})
    print(f"✅ {count} account credential(s) in {db_name}.{CREDENTIALS}")
except Exception as e:
    print("❌ Mongo ping failed:", repr(e))
    raise
finally:
    client.close()
