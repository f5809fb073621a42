"""CMake Lite LSP server main entry point."""

import re
from pathlib import Path
from typing import Any, Optional
from urllib.parse import unquote

import yaml
from pygls.lsp.server import LanguageServer
from lsprotocol.types import (
    CompletionItem,
    CompletionItemKind,
    CompletionList,
    CompletionOptions,
    CompletionParams,
    DidChangeTextDocumentParams,
    DidOpenTextDocumentParams,
    Hover,
    HoverParams,
    InitializeParams,
    InitializeResult,
    MarkupContent,
    MarkupKind,
    Position,
    Range,
    ServerCapabilities,
    TextDocumentSyncKind,
)

import cmakelite
from cmakelite.config import ConfigError
from cmakelite.lsp.position_utils import (
    get_open_placeholder,
    get_placeholder_at_position,
    get_prefix_at_position,
)
from cmakelite.substitution import Namespace, ResolutionContext, resolve
from cmakelite.workspace import Configuration, Workspace, WorkspaceFolder, flatten_settings, lookup_flat

__all__ = ["CMakeLiteLanguageServer", "create_server", "main"]

TRIGGER_CHARACTERS = ["{", ":", "."]

# "env:PA", "config.CMake" -> namespace, separator, partial name
_TYPED_NAMESPACE = re.compile(r"^(env|config|workspaceFolder)(\.|:)(.*)$")

_NAMESPACE_KINDS = {
    Namespace.ENV: "Environment variable",
    Namespace.CONFIG: "Setting",
    Namespace.WORKSPACE_FOLDER: "Workspace folder",
}

_MISSING = object()


def _uri_to_path(uri: str) -> Optional[str]:
    """Convert a file:// URI to a filesystem path.

    Returns:
        Filesystem path string, or None if the URI is not a file:// URI.
    """
    if uri.startswith("file://"):
        return unquote(uri[len("file://"):])
    return None


def _parse_settings_document(text: str) -> dict[str, Any]:
    """Parse a settings document, returning {} while it is incomplete or invalid."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError:
        return {}
    return data if isinstance(data, dict) else {}


class _DocumentConfiguration:
    """Settings from an open document, falling back to the loaded configuration."""

    def __init__(self, document: dict[str, Any], fallback: Configuration) -> None:
        self._flat = flatten_settings(document)
        self._fallback = fallback

    def keys(self) -> list[str]:
        return sorted(set(self._flat) | set(self._fallback.keys()))

    def get(self, key: str, default: Any = None) -> Any:
        value = lookup_flat(self._flat, key, _MISSING)
        if value is _MISSING:
            return self._fallback.get(key, default)
        return value


class CMakeLiteLanguageServer(LanguageServer):
    """Language server for CMake Lite settings files.

    Offers completion of ${...} placeholders and shows the resolved value of
    the placeholder under the cursor on hover.
    """

    def __init__(self, name: str, version: str):
        super().__init__(name, version)
        self.documents: dict[str, str] = {}
        self.handlers: dict[str, callable] = {}
        self.project = Workspace()
        # Set when the settings files could not be loaded on initialize
        self.config_error: Optional[str] = None

    def document_configuration(self, text: str) -> _DocumentConfiguration:
        return _DocumentConfiguration(_parse_settings_document(text), self.project.configuration)

    def document_context(self, text: str) -> ResolutionContext:
        return ResolutionContext(
            environ=self.project.environ,
            configuration=self.document_configuration(text),
            folders=self.project.folders,
            platform=self.project.platform,
        )


def _workspace_folders(params: InitializeParams) -> list[WorkspaceFolder]:
    folders = []
    for folder in params.workspace_folders or []:
        path = _uri_to_path(folder.uri)
        if path:
            folders.append(WorkspaceFolder(name=folder.name, path=Path(path)))
    if not folders and params.root_uri:
        path = _uri_to_path(params.root_uri)
        if path:
            folders.append(WorkspaceFolder(name=Path(path).name, path=Path(path)))
    return folders


def create_server() -> CMakeLiteLanguageServer:
    """Create and configure the CMake Lite LSP server."""
    server = CMakeLiteLanguageServer("cmakelite-lsp", cmakelite.__version__)

    @server.feature("initialize")
    def initialize(params: InitializeParams) -> InitializeResult:
        """Handle LSP initialize request.

        Records the client's workspace folders and loads their settings files.

        Returns:
            InitializeResult advertising full text sync, completion and hover
        """
        server.project.dispose()
        server.project = Workspace(_workspace_folders(params))
        try:
            server.project.reload()
            server.config_error = None
        except ConfigError as e:
            server.config_error = str(e)

        return InitializeResult(
            capabilities=ServerCapabilities(
                text_document_sync=TextDocumentSyncKind.Full,
                completion_provider=CompletionOptions(
                    trigger_characters=TRIGGER_CHARACTERS,
                ),
                hover_provider=True,
            )
        )

    @server.feature("shutdown")
    def shutdown() -> None:
        """Handle LSP shutdown request."""
        server.project.dispose()

    @server.feature("exit")
    def exit() -> None:
        """Handle LSP exit notification."""
        pass

    @server.feature("textDocument/didOpen")
    def did_open(params: DidOpenTextDocumentParams) -> None:
        server.documents[params.text_document.uri] = params.text_document.text

    @server.feature("textDocument/didChange")
    def did_change(params: DidChangeTextDocumentParams) -> None:
        """Handle document change notification.

        Operates in full sync mode where the entire document content is sent.
        """
        if params.content_changes:
            server.documents[params.text_document.uri] = params.content_changes[0].text

    def _names_for(namespace: Namespace, text: str) -> list[str]:
        if namespace is Namespace.ENV:
            return sorted(server.project.environ)
        if namespace is Namespace.CONFIG:
            return server.document_configuration(text).keys()
        return [folder.name for folder in server.project.folders]

    @server.feature(
        "textDocument/completion",
        CompletionOptions(trigger_characters=TRIGGER_CHARACTERS),
    )
    def completion(params: CompletionParams) -> CompletionList:
        """Handle completion request.

        Inside an unclosed ``${``:
        - before a separator, offers the namespaces (env:, config:, workspaceFolder:)
        - after ``${env:``, offers environment variable names
        - after ``${config:``, offers setting keys from the loaded settings
          files and the document itself
        - after ``${workspaceFolder:``, offers workspace folder names

        Returns:
            CompletionList filtered by what has been typed, or an empty list
        """
        empty = CompletionList(is_incomplete=False, items=[])
        text = server.documents.get(params.text_document.uri)
        if text is None:
            return empty

        typed = get_open_placeholder(get_prefix_at_position(text, params.position))
        if typed is None:
            return empty

        match = _TYPED_NAMESPACE.match(typed)
        if match is None:
            items = [
                CompletionItem(
                    label=f"{namespace.value}:",
                    kind=CompletionItemKind.Module,
                    detail=_NAMESPACE_KINDS[namespace],
                    insert_text=f"{namespace.value}:",
                )
                for namespace in Namespace
                if namespace.value.startswith(typed)
            ]
            return CompletionList(is_incomplete=False, items=items)

        namespace = Namespace(match.group(1))
        partial = match.group(3)
        items = [
            CompletionItem(
                label=name,
                kind=CompletionItemKind.Variable,
                detail=f"{_NAMESPACE_KINDS[namespace]}: ${{{namespace.value}:{name}}}",
                insert_text=name,
            )
            for name in _names_for(namespace, text)
            if name.startswith(partial)
        ]
        return CompletionList(is_incomplete=False, items=items)

    @server.feature("textDocument/hover")
    def hover(params: HoverParams) -> Optional[Hover]:
        """Show what the placeholder under the cursor resolves to."""
        text = server.documents.get(params.text_document.uri)
        if text is None:
            return None

        placeholder = get_placeholder_at_position(text, params.position)
        if placeholder is None:
            return None

        line = text.split("\n")[params.position.line]
        source = line[placeholder.start:placeholder.end]
        resolved = resolve(source, context=server.document_context(text))
        if resolved == source:
            value = f"`{source}` cannot be resolved"
        else:
            value = f"`{source}` → `{resolved}`"

        return Hover(
            contents=MarkupContent(kind=MarkupKind.Markdown, value=value),
            range=Range(
                start=Position(line=params.position.line, character=placeholder.start),
                end=Position(line=params.position.line, character=placeholder.end),
            ),
        )

    # Store handler references for testing
    server.handlers["initialize"] = initialize
    server.handlers["shutdown"] = shutdown
    server.handlers["exit"] = exit
    server.handlers["textDocument/didOpen"] = did_open
    server.handlers["textDocument/didChange"] = did_change
    server.handlers["textDocument/completion"] = completion
    server.handlers["textDocument/hover"] = hover

    return server


def main() -> None:
    """Start the CMake Lite LSP server."""
    server = create_server()
    server.start_io()


if __name__ == "__main__":
    main()
