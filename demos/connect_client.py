#!/usr/bin/env python3
"""
Connect Four client for Connect Four Arena server.

Joins the matchmaking queue and plays with the same bot the server uses
for its AI opponent. ``--continue`` rejoins the last saved game.
"""

import argparse
import asyncio
import json
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import websockets
from rich.console import Console

from connect_arena.ai import ConnectFourBot
from connect_arena.renderer import BoardRenderer

console = Console()

DEFAULT_SESSION_FILE = ".connect_arena_session.json"


def load_session_file(file_path: str) -> Optional[Dict[str, str]]:
    """
    Load a saved game reference.

    :param file_path: Path to the session file
    :type file_path: str
    :return: Dict with game_id and username, or None if missing or invalid
    :rtype: Optional[Dict[str, str]]
    """
    try:
        with open(file_path, 'r') as f:
            data = json.load(f)
    except FileNotFoundError:
        console.print(f"[red]Error: Session file not found: {file_path}[/red]")
        return None
    except json.JSONDecodeError:
        console.print(f"[red]Error: Invalid JSON in session file: {file_path}[/red]")
        return None

    if not data.get("game_id") or not data.get("username"):
        console.print(f"[red]Error: Missing required fields in {file_path}[/red]")
        return None
    return {"game_id": data["game_id"], "username": data["username"]}


class ConnectFourClient:
    """
    WebSocket client that plays Connect Four automatically.

    :param server_url: Base URL of the Connect Four Arena server
    :type server_url: str
    :param username: Display handle to join with
    :type username: str
    :param search_depth: Minimax depth of the local bot
    :type search_depth: int
    :param quick: Use win/block/center heuristics only, no search
    :type quick: bool
    :param session_file: Where to save the game reference for rejoining
    :type session_file: str
    """

    def __init__(self, server_url: str, username: str, search_depth: int = 5, quick: bool = False,
                 session_file: str = DEFAULT_SESSION_FILE):
        self.server_url = server_url.replace('http://', 'ws://').replace('https://', 'wss://')
        self.username = username
        self.search_depth = search_depth
        self.quick = quick
        self.session_file = session_file
        self.game_id: Optional[str] = None
        self.player_id: Optional[str] = None
        self.opponent_id: Optional[str] = None
        self.board: List[List[Optional[str]]] = []
        self.turn: Optional[str] = None
        self.last_move_count = -1
        self.websocket = None
        self.message_queue: asyncio.Queue = asyncio.Queue()

    async def send_message(self, message: Dict[str, Any]) -> None:
        if self.websocket:
            await self.websocket.send(json.dumps(message))

    async def receive_messages(self) -> None:
        """Background task pushing decoded server messages onto the queue."""
        if not self.websocket:
            return

        try:
            async for message in self.websocket:
                await self.message_queue.put(json.loads(message))
        except websockets.exceptions.ConnectionClosed:
            console.print("[red]✗ Connection to server closed[/red]")

    def save_session(self) -> None:
        try:
            with open(self.session_file, 'w') as f:
                json.dump({"game_id": self.game_id, "username": self.username}, f)
        except OSError as e:
            console.print(f"[yellow]⚠ Could not save session file:[/yellow] {e}")

    def clear_session(self) -> None:
        path = Path(self.session_file)
        if path.exists():
            path.unlink()

    def apply_snapshot(self, game: Dict[str, Any]) -> None:
        """
        Adopt the server's view of the game.

        :param game: Snapshot from a server message
        :type game: Dict[str, Any]
        """
        self.game_id = game["id"]
        self.board = game["board"]
        self.turn = game["turn"]

    def symbols(self) -> Dict[str, str]:
        return {self.player_id: "X", self.opponent_id: "O"}

    def is_my_turn(self, game: Dict[str, Any]) -> bool:
        return game.get("status") == "in_progress" and game.get("turn") == self.player_id

    def choose_column(self) -> int:
        """
        Pick a column for the current board.

        :return: Column index to play
        :rtype: int
        """
        bot = ConnectFourBot(self.player_id, self.opponent_id, self.search_depth)
        choice = bot.quick_move(self.board) if self.quick else bot.choose_move(self.board)
        console.print(f"[dim]Reasoning:[/dim] {choice.reasoning} [dim](nodes: {bot.nodes_searched})[/dim]")
        return choice.column

    async def play_turn(self, game: Dict[str, Any]) -> None:
        # The server may send several messages for one position
        if game["moves"] == self.last_move_count:
            return
        self.last_move_count = game["moves"]

        console.print(f"\n[bold magenta]━━━ Move {game['moves'] + 1} ({self.username}) ━━━[/bold magenta]")
        move_start = time.time()
        column = self.choose_column()
        move_time = time.time() - move_start
        console.print(
            f"[bold green]➜ Chosen column:[/bold green] [bold white]{column}[/bold white] "
            f"[dim](time: {move_time:.2f}s)[/dim]"
        )
        await self.send_message({"type": "make_move", "game_id": self.game_id, "column": column})

    async def handle_message(self, msg: Dict[str, Any]) -> bool:
        """
        React to one server message.

        :param msg: Decoded server message
        :type msg: Dict[str, Any]
        :return: True once the game is over
        :rtype: bool
        """
        msg_type = msg.get("type")

        if msg_type == "queued":
            console.print(f"[yellow]⏳ Waiting for an opponent ({msg.get('timeout_seconds')}s before AI)...[/yellow]")

        elif msg_type in ("session_started", "session_rejoined"):
            self.player_id = msg["your_id"]
            self.opponent_id = msg["opponent_id"]
            self.apply_snapshot(msg["game"])
            self.save_session()
            label = "Match found" if msg_type == "session_started" else "Rejoined game"
            console.print(f"[green]✓ {label}![/green] [cyan]Game ID:[/cyan] [bold]{self.game_id}[/bold]")
            if msg.get("vs_ai"):
                console.print("[cyan]Opponent:[/cyan] AI Bot")
            print(BoardRenderer.render(self.board, self.symbols()))
            if self.is_my_turn(msg["game"]):
                await self.play_turn(msg["game"])

        elif msg_type == "move_applied":
            self.apply_snapshot(msg["game"])
            print("\n" + BoardRenderer.render(self.board, self.symbols()))
            if self.is_my_turn(msg["game"]):
                await self.play_turn(msg["game"])

        elif msg_type == "session_ended":
            winner = msg.get("winner")
            console.print("\n[bold red]Game over![/bold red]")
            console.print(f"[yellow]Reason:[/yellow] {msg.get('reason')}")
            if winner is None:
                console.print("[yellow]Draw[/yellow]")
            elif winner == self.player_id:
                console.print("[bold green]I won :)[/bold green]")
            else:
                console.print("[bold red]I lost :([/bold red]")
            self.clear_session()
            return True

        elif msg_type == "opponent_disconnected":
            console.print(
                f"[yellow]⚠ Opponent disconnected - waiting {msg.get('timeout_seconds')}s for reconnection...[/yellow]"
            )

        elif msg_type == "opponent_reconnected":
            console.print("[green]✓ Opponent reconnected[/green]")

        elif msg_type in ("move_rejected", "rejoin_rejected", "error"):
            console.print(f"[red]✗ {msg_type}:[/red] {msg.get('message', 'Unknown error')} [dim]({msg.get('reason')})[/dim]")
            if msg_type == "rejoin_rejected":
                self.clear_session()
                return True

        return False

    async def run(self, rejoin_game_id: Optional[str] = None) -> None:
        """
        Connect, join or rejoin, and play until the game ends.

        :param rejoin_game_id: Game to rejoin instead of joining the queue
        :type rejoin_game_id: Optional[str]
        """
        try:
            async with websockets.connect(f"{self.server_url}/ws") as websocket:
                self.websocket = websocket
                console.print(f"[green]✓[/green] Connected to {self.server_url}")
                receive_task = asyncio.create_task(self.receive_messages())

                if rejoin_game_id:
                    console.print(f"[cyan]Rejoining game {rejoin_game_id} as {self.username}...[/cyan]")
                    await self.send_message({"type": "rejoin_game", "game_id": rejoin_game_id,
                                             "username": self.username})
                else:
                    await self.send_message({"type": "join_queue", "username": self.username})

                game_over = False
                while not game_over:
                    if receive_task.done() and self.message_queue.empty():
                        break
                    try:
                        msg = await asyncio.wait_for(self.message_queue.get(), timeout=0.5)
                    except asyncio.TimeoutError:
                        continue
                    game_over = await self.handle_message(msg)

                receive_task.cancel()

        except KeyboardInterrupt:
            console.print("\n[yellow]⚠ Client stopped by user[/yellow]")
        except (OSError, websockets.exceptions.WebSocketException) as e:
            console.print(f"[red]✗ Connection error:[/red] {e}")


def main() -> None:
    """
    Parse command-line arguments and start the Connect Four client.
    """
    parser = argparse.ArgumentParser(description='Connect Four Arena Client')
    parser.add_argument('--username', type=str, required=True, help='Display handle to play as')
    parser.add_argument('--port', type=int, default=9002, help='Server port (default: 9002)')
    parser.add_argument('--search-depth', type=int, default=5, help='Bot search depth, 3 to 7 (default: 5)')
    parser.add_argument('--quick', action='store_true', help='Play with heuristics only, no search')
    parser.add_argument('--continue', dest='continue_game', action='store_true',
                        help='Rejoin the game saved in the session file')
    parser.add_argument('--session-file', type=str, default=DEFAULT_SESSION_FILE,
                        help=f'File storing the current game reference (default: {DEFAULT_SESSION_FILE})')

    args = parser.parse_args()

    server_url = f"http://localhost:{args.port}"
    client = ConnectFourClient(server_url, args.username, search_depth=args.search_depth, quick=args.quick,
                               session_file=args.session_file)

    rejoin_game_id = None
    if args.continue_game:
        saved = load_session_file(args.session_file)
        if saved:
            client.username = saved["username"]
            rejoin_game_id = saved["game_id"]
        else:
            console.print("[red]✗ No saved game found. Joining the queue instead.[/red]")

    asyncio.run(client.run(rejoin_game_id))


if __name__ == '__main__':
    main()
