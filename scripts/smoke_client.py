"""Manual smoke test against a running CodeSync server.

Joins a room, edits the active file, creates a scratch file and prints
every frame the server sends back.

    python scripts/smoke_client.py ws://localhost:5000/ws demo alice
"""
import asyncio
import sys

from codesync.client import SyncClient


async def main(url: str, room_id: str, username: str) -> None:
    async with SyncClient(url, room_id, username) as client:
        joined = await client.recv_until("joined")
        print(f"Joined {room_id} as {client.mirror.socket_id}: {[c['username'] for c in joined['clients']]}")

        active = client.mirror.active_file_id
        await client.edit(active, f"// hello from {username}\n")
        await client.create_file("scratch.js")
        created = await client.recv_until("file-created")
        print(f"Created: {created['file']['name']} ({created['file']['id']})")

        await client.request_files()
        synced = await client.recv_until("files-synced")
        for code_file in synced["files"]:
            print(f"  {code_file['name']}: {code_file['content']!r}")


if __name__ == "__main__":
    args = sys.argv[1:] or ["ws://localhost:5000/ws", "demo", "smoke"]
    asyncio.run(main(*args))
