"""
CodeMind - Command Handler Module

Slash commands for the interactive terminal client and the async loop that
reads user input. Plain text is submitted as a question to the active chat.
"""

import asyncio
import logging
import shlex
from pathlib import Path
from typing import Any, Dict, List, Optional

from .async_client import AsyncClient
from .base_client import Colors
from .export import EXPORTERS
from .models import ChatSession, Folder, SidebarFilter, color_from_name, color_name
from .providers import ProviderError
from .storage import PersistenceError

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """A command could not be carried out; the message is shown to the user."""
    pass


class CommandHandler:
    """Maps slash commands to client and data manager operations."""

    def __init__(self, client: AsyncClient, keychain=None):
        """
        Args:
            client: The AsyncClient instance.
            keychain: KeychainHelper used by /apikey; the command is unavailable if None.
        """
        self.client = client
        self.keychain = keychain
        self.current_folder_id: Optional[str] = None
        self.commands = self._build_command_map()

    @property
    def dm(self):
        return self.client.data_manager

    def _build_command_map(self) -> Dict[str, Dict[str, Any]]:
        return {
            "/help": {"handler": self.cmd_help, "usage": "/help", "description": "Show help message"},
            "/quit": {"handler": self.cmd_quit, "usage": "/quit", "description": "Exit the application",
                      "aliases": ["/exit"]},
            "/new": {"handler": self.cmd_new, "usage": "/new", "description": "Start a new chat in the current folder"},
            "/list": {"handler": self.cmd_list, "usage": "/list", "description": "List folders and chats here",
                      "aliases": ["/ls"]},
            "/cd": {"handler": self.cmd_cd, "usage": "/cd <folder|..|/>", "description": "Change the current folder"},
            "/switch": {"handler": self.cmd_switch, "usage": "/switch <chat>", "description": "Make a chat active"},
            "/rename": {"handler": self.cmd_rename, "usage": "/rename <chat|.> <title>", "description": "Rename a chat"},
            "/fav": {"handler": self.cmd_fav, "usage": "/fav [chat]", "description": "Toggle favorite"},
            "/color": {"handler": self.cmd_color, "usage": "/color <chat|folder> <color|none>",
                       "description": "Set a colour tag"},
            "/delete": {"handler": self.cmd_delete, "usage": "/delete <chat>", "description": "Delete a chat"},
            "/clear": {"handler": self.cmd_clear, "usage": "/clear [chat]", "description": "Remove all entries of a chat"},
            "/delentry": {"handler": self.cmd_delentry, "usage": "/delentry <entry>",
                          "description": "Delete one entry of the active chat"},
            "/history": {"handler": self.cmd_history, "usage": "/history", "description": "Show the active chat"},
            "/search": {"handler": self.cmd_search, "usage": "/search <text>",
                        "description": "Search entries of the active chat"},
            "/filter": {"handler": self.cmd_filter, "usage": "/filter <all|favorites> [color|none]",
                        "description": "Filter the listing"},
            "/folders": {"handler": self.cmd_folders, "usage": "/folders", "description": "Show the folder tree",
                         "aliases": ["/tree"]},
            "/mkdir": {"handler": self.cmd_mkdir, "usage": "/mkdir <name>", "description": "Create a folder here"},
            "/rmdir": {"handler": self.cmd_rmdir, "usage": "/rmdir <folder> [-r]",
                       "description": "Delete a folder (-r also deletes its contents)"},
            "/renamedir": {"handler": self.cmd_renamedir, "usage": "/renamedir <folder> <name>",
                           "description": "Rename a folder"},
            "/mvdir": {"handler": self.cmd_mvdir, "usage": "/mvdir <folder> <target|/>", "description": "Move a folder"},
            "/move": {"handler": self.cmd_move, "usage": "/move <chat> <folder|/>", "description": "Move a chat"},
            "/export": {"handler": self.cmd_export, "usage": "/export <txt|md|json> [file]",
                        "description": "Export the active chat"},
            "/image": {"handler": self.cmd_image, "usage": "/image <png file> [question]",
                       "description": "Ask about an image"},
            "/apikey": {"handler": self.cmd_apikey, "usage": "/apikey <key>|--delete",
                        "description": "Store or delete the API key"},
            "/models": {"handler": self.cmd_models, "usage": "/models", "description": "List available models"},
        }

    async def handle_command(self, command_line: str) -> bool:
        """Handle a command.

        Returns:
            True if the application should exit, False otherwise
        """
        try:
            tokens = shlex.split(command_line)
        except ValueError as e:
            print(f"{Colors.FAIL}Could not parse command: {e}{Colors.ENDC}")
            return False
        if not tokens:
            return False
        cmd, args = tokens[0].lower(), tokens[1:]

        for command_key, info in self.commands.items():
            if cmd == command_key or cmd in info.get("aliases", []):
                try:
                    return bool(await info["handler"](args))
                except CommandError as e:
                    print(f"{Colors.WARNING}{e}{Colors.ENDC}")
                except PersistenceError as e:
                    print(f"{Colors.FAIL}Changes could not be saved: {e}{Colors.ENDC}")
                return False

        print(f"{Colors.WARNING}Unknown command. Type /help for available commands.{Colors.ENDC}")
        return False

    # --- Lookup helpers ---

    def find_session(self, token: str) -> ChatSession:
        """Resolves '.', an exact title (case-insensitive) or an id prefix to one chat."""
        if token == ".":
            session = self.dm.active_session
            if session is None:
                raise CommandError("No active chat.")
            return session
        lowered = token.lower()
        matches = ([s for s in self.dm.chat_sessions if s.title.lower() == lowered]
                   or [s for s in self.dm.chat_sessions if s.id.startswith(token)])
        if len(matches) != 1:
            raise CommandError(f"No unique chat matches '{token}'.")
        return matches[0]

    def find_folder(self, token: str) -> Folder:
        """Names in the current folder win over names elsewhere, which win over id prefixes."""
        lowered = token.lower()
        matches = ([f for f in self.dm.subfolders(self.current_folder_id) if f.name.lower() == lowered]
                   or [f for f in self.dm.folders if f.name.lower() == lowered]
                   or [f for f in self.dm.folders if f.id.startswith(token)])
        if len(matches) != 1:
            raise CommandError(f"No unique folder matches '{token}'.")
        return matches[0]

    def _folder_or_root(self, token: str) -> Optional[str]:
        return None if token == "/" else self.find_folder(token).id

    @staticmethod
    def _parse_color(token: str) -> Optional[str]:
        if token.lower() == "none":
            return None
        hex_value = color_from_name(token)
        if hex_value is None:
            raise CommandError(f"Unknown colour '{token}'.")
        return hex_value

    @staticmethod
    def _need(args: List[str], count: int, usage: str) -> None:
        if len(args) < count:
            raise CommandError(f"Usage: {usage}")

    # --- Commands ---

    async def cmd_help(self, args: List[str]) -> bool:
        print(f"\n{Colors.HEADER}Available Commands:{Colors.ENDC}")
        for info in self.commands.values():
            aliases = f" ({', '.join(info['aliases'])})" if info.get("aliases") else ""
            print(f"{Colors.BOLD}{info['usage']}{Colors.ENDC}{aliases} - {info['description']}")
        print("\nAnything that does not start with '/' is sent to the active chat.")
        return False

    async def cmd_quit(self, args: List[str]) -> bool:
        print(f"{Colors.GREEN}Goodbye!{Colors.ENDC}")
        return True

    async def cmd_new(self, args: List[str]) -> bool:
        session = self.dm.create_session(activate=True)
        if self.current_folder_id is not None:
            self.dm.move_session_to_folder(session.id, self.current_folder_id)
        print(f"{Colors.GREEN}Started new chat: '{session.title}' (ID: {session.id[:8]}){Colors.ENDC}")
        return False

    async def cmd_list(self, args: List[str]) -> bool:
        self.client.display_sessions(self.current_folder_id)
        return False

    async def cmd_cd(self, args: List[str]) -> bool:
        self._need(args, 1, "/cd <folder|..|/>")
        if args[0] == "/":
            self.current_folder_id = None
        elif args[0] == "..":
            current = self.dm.get_folder(self.current_folder_id)
            self.current_folder_id = current.parent_id if current else None
        else:
            self.current_folder_id = self.find_folder(args[0]).id
        print(f"{Colors.CYAN}Now in {self.dm.folder_path(self.current_folder_id)}{Colors.ENDC}")
        return False

    async def cmd_switch(self, args: List[str]) -> bool:
        self._need(args, 1, "/switch <chat>")
        session = self.find_session(args[0])
        self.dm.set_active_session(session.id)
        print(f"{Colors.GREEN}Switched to '{session.title}'.{Colors.ENDC}")
        return False

    async def cmd_rename(self, args: List[str]) -> bool:
        self._need(args, 2, "/rename <chat|.> <title>")
        session = self.find_session(args[0])
        if not self.dm.update_title(session.id, " ".join(args[1:])):
            raise CommandError("Titles cannot be empty.")
        print(f"{Colors.GREEN}Renamed to '{session.title}'.{Colors.ENDC}")
        return False

    async def cmd_fav(self, args: List[str]) -> bool:
        session = self.find_session(args[0] if args else ".")
        self.dm.toggle_favorite(session.id)
        state = "added to" if session.is_favorite else "removed from"
        print(f"{Colors.GREEN}'{session.title}' {state} favorites.{Colors.ENDC}")
        return False

    async def cmd_color(self, args: List[str]) -> bool:
        self._need(args, 2, "/color <chat|folder> <color|none>")
        color = self._parse_color(args[1])
        try:
            session = self.find_session(args[0])
        except CommandError:
            folder = self.find_folder(args[0])
            self.dm.update_folder_color(folder.id, color)
            print(f"{Colors.GREEN}Folder '{folder.name}' colour: {color_name(color) if color else 'none'}{Colors.ENDC}")
            return False
        self.dm.update_session_color(session.id, color)
        print(f"{Colors.GREEN}Chat '{session.title}' colour: {color_name(color) if color else 'none'}{Colors.ENDC}")
        return False

    async def cmd_delete(self, args: List[str]) -> bool:
        self._need(args, 1, "/delete <chat>")
        session = self.find_session(args[0])
        self.dm.delete_session(session.id)
        print(f"{Colors.GREEN}Deleted '{session.title}'.{Colors.ENDC}")
        if self.dm.active_session is None:
            print(f"{Colors.WARNING}No chats left. Use /new to start one.{Colors.ENDC}")
        return False

    async def cmd_clear(self, args: List[str]) -> bool:
        session = self.find_session(args[0] if args else ".")
        if self.dm.clear_entries(session.id):
            print(f"{Colors.GREEN}Cleared '{session.title}'.{Colors.ENDC}")
        else:
            print(f"{Colors.WARNING}Nothing to clear.{Colors.ENDC}")
        return False

    async def cmd_delentry(self, args: List[str]) -> bool:
        self._need(args, 1, "/delentry <entry>")
        matches = [e for e in self.dm.active_session_entries if e.id.startswith(args[0])]
        if len(matches) != 1:
            raise CommandError(f"No unique entry matches '{args[0]}'.")
        self.dm.delete_entry(matches[0].id)
        print(f"{Colors.GREEN}Entry deleted.{Colors.ENDC}")
        return False

    async def cmd_history(self, args: List[str]) -> bool:
        self.client.display_history()
        return False

    async def cmd_search(self, args: List[str]) -> bool:
        self._need(args, 1, "/search <text>")
        results = self.dm.search_active_entries(" ".join(args))
        print(f"{Colors.CYAN}{len(results)} matching entries.{Colors.ENDC}")
        if results:
            self.client.display_history(results)
        return False

    async def cmd_filter(self, args: List[str]) -> bool:
        self._need(args, 1, "/filter <all|favorites> [color|none]")
        choice = args[0].lower()
        if choice in ("all", "a"):
            self.client.sidebar_filter = SidebarFilter.ALL
        elif choice in ("favorites", "favourites", "fav", "f"):
            self.client.sidebar_filter = SidebarFilter.FAVORITES
        else:
            raise CommandError("Filter must be 'all' or 'favorites'.")
        if len(args) > 1:
            self.client.color_filter = self._parse_color(args[1])
        self.client.display_sessions(self.current_folder_id)
        return False

    def _print_tree(self, parent_id: Optional[str], depth: int) -> None:
        for folder in self.dm.subfolders(parent_id):
            marker = "*" if folder.id == self.current_folder_id else " "
            star = " (favorites)" if self.dm.folder_contains_favorites(folder.id) else ""
            print(f"{marker} {'  ' * depth}{folder.name}/ [{len(self.dm.sessions_in(folder.id))}]"
                  f"{star} {Colors.CYAN}{folder.id[:8]}{Colors.ENDC}")
            self._print_tree(folder.id, depth + 1)

    async def cmd_folders(self, args: List[str]) -> bool:
        stats = self.dm.stats()
        print(f"\n{Colors.HEADER}Folders{Colors.ENDC} ({stats['folders']} folders, {stats['sessions']} chats, "
              f"{stats['favorites']} favorites)")
        if not self.dm.folders:
            print(f"{Colors.WARNING}No folders yet. Use /mkdir to create one.{Colors.ENDC}")
            return False
        print(f"{'*' if self.current_folder_id is None else ' '} / [{len(self.dm.root_sessions)}]")
        self._print_tree(None, 1)
        return False

    async def cmd_mkdir(self, args: List[str]) -> bool:
        self._need(args, 1, "/mkdir <name>")
        folder = self.dm.create_folder(" ".join(args), self.current_folder_id)
        if folder is None:
            raise CommandError("Folder names cannot be empty.")
        print(f"{Colors.GREEN}Created folder '{folder.name}' (ID: {folder.id[:8]}).{Colors.ENDC}")
        return False

    async def cmd_rmdir(self, args: List[str]) -> bool:
        self._need(args, 1, "/rmdir <folder> [-r]")
        recursive = "-r" in args
        names = [a for a in args if a != "-r"]
        self._need(names, 1, "/rmdir <folder> [-r]")
        folder = self.find_folder(names[0])
        self.dm.delete_folder(folder.id, recursive=recursive)
        if self.current_folder_id is not None and self.dm.get_folder(self.current_folder_id) is None:
            self.current_folder_id = None
        how = "with all contents" if recursive else "contents moved up"
        print(f"{Colors.GREEN}Deleted folder '{folder.name}' ({how}).{Colors.ENDC}")
        return False

    async def cmd_renamedir(self, args: List[str]) -> bool:
        self._need(args, 2, "/renamedir <folder> <name>")
        folder = self.find_folder(args[0])
        if not self.dm.rename_folder(folder.id, " ".join(args[1:])):
            raise CommandError("Folder names cannot be empty.")
        print(f"{Colors.GREEN}Folder renamed to '{folder.name}'.{Colors.ENDC}")
        return False

    async def cmd_mvdir(self, args: List[str]) -> bool:
        self._need(args, 2, "/mvdir <folder> <target|/>")
        folder = self.find_folder(args[0])
        target = self._folder_or_root(args[1])
        if not self.dm.move_folder(folder.id, target):
            raise CommandError("A folder cannot be moved into itself or one of its subfolders.")
        print(f"{Colors.GREEN}Moved '{folder.name}' to {self.dm.folder_path(target)}.{Colors.ENDC}")
        return False

    async def cmd_move(self, args: List[str]) -> bool:
        self._need(args, 2, "/move <chat> <folder|/>")
        session = self.find_session(args[0])
        target = self._folder_or_root(args[1])
        self.dm.move_session_to_folder(session.id, target)
        print(f"{Colors.GREEN}Moved '{session.title}' to {self.dm.folder_path(target)}.{Colors.ENDC}")
        return False

    async def cmd_export(self, args: List[str]) -> bool:
        self._need(args, 1, "/export <txt|md|json> [file]")
        exporter = EXPORTERS.get(args[0].lower())
        if exporter is None:
            raise CommandError(f"Unknown export format '{args[0]}'. Use txt, md or json.")
        session = self.find_session(".")
        content = exporter(session)
        if len(args) > 1:
            path = Path(args[1]).expanduser()
            await asyncio.to_thread(path.write_text, content, encoding="utf-8")
            print(f"{Colors.GREEN}Exported '{session.title}' to {path}.{Colors.ENDC}")
        else:
            print(content)
        return False

    async def cmd_image(self, args: List[str]) -> bool:
        self._need(args, 1, "/image <png file> [question]")
        path = Path(args[0]).expanduser()
        try:
            image_data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise CommandError(f"Could not read image {path}: {e}") from e
        await self.submit(" ".join(args[1:]), image_data=image_data)
        return False

    async def cmd_apikey(self, args: List[str]) -> bool:
        if self.keychain is None:
            raise CommandError("Credential store is not available.")
        self._need(args, 1, "/apikey <key>|--delete")
        if args[0] == "--delete":
            ok = self.keychain.delete_api_key()
            print(f"{Colors.GREEN}API Key deleted.{Colors.ENDC}" if ok else f"{Colors.WARNING}No API key stored.{Colors.ENDC}")
        elif self.keychain.save_api_key(args[0]):
            print(f"{Colors.GREEN}API Key Saved!{Colors.ENDC}")
        else:
            print(f"{Colors.FAIL}Error Saving Key{Colors.ENDC}")
        return False

    async def cmd_models(self, args: List[str]) -> bool:
        try:
            models = await self.client.service.list_models(self.client.api_key_lookup())
        except ProviderError as e:
            raise CommandError(str(e)) from e
        print(f"\n{Colors.HEADER}Available models (current: {self.client.current_model_name}):{Colors.ENDC}")
        for model in models:
            print(f"  {model['name']} - {model['display_name']}")
        return False

    # --- Questions ---

    async def submit(self, text: str, image_data: Optional[bytes] = None) -> None:
        print(f"{Colors.CYAN}Generating response...{Colors.ENDC}")
        entry = await self.client.submit_query(text, image_data=image_data)
        if entry is None:
            if self.client.status_text:
                print(f"{Colors.FAIL}{self.client.status_text}{Colors.ENDC}")
            return
        print(f"\n{Colors.GREEN}AI: {Colors.ENDC}{entry.answer}")
        metadata = self.client.format_entry_metadata(entry)
        if metadata:
            print(f"{Colors.CYAN}[{metadata}]{Colors.ENDC}")
        if self.client.status_text:
            print(f"{Colors.WARNING}{self.client.status_text}{Colors.ENDC}")


async def async_command_loop(client: AsyncClient, keychain=None) -> None:
    """Run the interactive loop until /quit, EOF or Ctrl+C."""
    handler = CommandHandler(client, keychain=keychain)

    print(f"\n{Colors.HEADER}Welcome to CodeMind!{Colors.ENDC}")
    print(f"\nType {Colors.BOLD}/new{Colors.ENDC} to start a new chat")
    print(f"Type {Colors.BOLD}/list{Colors.ENDC} to see your chats and folders")
    print(f"Type {Colors.BOLD}/help{Colors.ENDC} for all available commands")
    for error in client.data_manager.load_errors:
        print(f"{Colors.FAIL}Saved data could not be loaded ({error}).{Colors.ENDC}")

    while True:
        try:
            user_input = (await asyncio.to_thread(input, f"\n{Colors.BLUE}You: {Colors.ENDC}")).strip()
            if not user_input:
                continue
            if user_input.startswith('/'):
                if await handler.handle_command(user_input):
                    break
                continue
            await handler.submit(user_input)
        except (KeyboardInterrupt, EOFError):
            print(f"\n{Colors.GREEN}Goodbye!{Colors.ENDC}")
            break
        except Exception as e:
            logger.exception("Unexpected error in command loop")
            print(f"{Colors.FAIL}Error: {e}{Colors.ENDC}")
