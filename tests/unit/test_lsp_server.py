"""Tests for LSP server module."""

import unittest
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest.mock import patch

from lsprotocol.types import (
    CompletionItemKind,
    CompletionOptions,
    CompletionParams,
    DidChangeTextDocumentParams,
    DidOpenTextDocumentParams,
    HoverParams,
    InitializeParams,
    Position,
    TextDocumentContentChangeWholeDocument,
    TextDocumentIdentifier,
    TextDocumentItem,
    TextDocumentSyncKind,
    VersionedTextDocumentIdentifier,
    WorkspaceFolder as LspWorkspaceFolder,
)

import cmakelite
from cmakelite.lsp.server import CMakeLiteLanguageServer, create_server
from cmakelite.workspace import Configuration, Workspace, WorkspaceFolder
from helpers.io import write_settings

URI = "file:///project/.cmakelite.yml"


def open_document(server, text, uri=URI):
    server.handlers["textDocument/didOpen"](
        DidOpenTextDocumentParams(
            text_document=TextDocumentItem(uri=uri, language_id="yaml", version=1, text=text)
        )
    )


def complete(server, line, character, uri=URI):
    return server.handlers["textDocument/completion"](
        CompletionParams(
            text_document=TextDocumentIdentifier(uri=uri),
            position=Position(line=line, character=character),
        )
    )


def hover(server, line, character, uri=URI):
    return server.handlers["textDocument/hover"](
        HoverParams(
            text_document=TextDocumentIdentifier(uri=uri),
            position=Position(line=line, character=character),
        )
    )


class TestCreateServer(unittest.TestCase):

    def test_create_server_returns_language_server(self):
        server = create_server()
        self.assertIsInstance(server, CMakeLiteLanguageServer)
        self.assertEqual(server.name, "cmakelite-lsp")
        self.assertEqual(server.version, cmakelite.__version__)

    def test_handlers_registered(self):
        server = create_server()
        for method in [
            "initialize",
            "shutdown",
            "exit",
            "textDocument/didOpen",
            "textDocument/didChange",
            "textDocument/completion",
            "textDocument/hover",
        ]:
            with self.subTest(method=method):
                self.assertIn(method, server.handlers)


class TestInitialize(unittest.TestCase):

    def test_initialize_returns_capabilities(self):
        server = create_server()
        with TemporaryDirectory() as tmpdir, \
                patch("cmakelite.config.get_user_config_path", return_value=Path(tmpdir) / "u.yml"), \
                patch("cmakelite.config.get_machine_config_path", return_value=Path(tmpdir) / "m.yml"):
            result = server.handlers["initialize"](
                InitializeParams(process_id=1, root_uri=Path(tmpdir).as_uri(), capabilities={})
            )

        self.assertEqual(result.capabilities.text_document_sync, TextDocumentSyncKind.Full)
        self.assertIsInstance(result.capabilities.completion_provider, CompletionOptions)
        self.assertEqual(result.capabilities.completion_provider.trigger_characters, ["{", ":", "."])
        self.assertTrue(result.capabilities.hover_provider)

    def test_initialize_records_workspace_folders_and_settings(self):
        server = create_server()
        with TemporaryDirectory() as tmpdir:
            root = Path(tmpdir) / "proj"
            root.mkdir()
            write_settings(root / ".cmakelite.yml", {"CMakeLite": {"buildDir": "build"}})
            with patch("cmakelite.config.get_user_config_path", return_value=root / "u.yml"), \
                    patch("cmakelite.config.get_machine_config_path", return_value=root / "m.yml"):
                server.handlers["initialize"](
                    InitializeParams(
                        process_id=1,
                        capabilities={},
                        workspace_folders=[LspWorkspaceFolder(uri=root.as_uri(), name="Proj")],
                    )
                )

        self.assertEqual([f.name for f in server.project.folders], ["Proj"])
        self.assertEqual(server.project.configuration.get("CMakeLite.buildDir"), "build")
        self.assertIsNone(server.config_error)

    def test_initialize_with_invalid_settings_records_error(self):
        server = create_server()
        with TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / ".cmakelite.yml").write_text("key: [unclosed\n")
            with patch("cmakelite.config.get_user_config_path", return_value=root / "u.yml"), \
                    patch("cmakelite.config.get_machine_config_path", return_value=root / "m.yml"):
                server.handlers["initialize"](
                    InitializeParams(process_id=1, root_uri=root.as_uri(), capabilities={})
                )

        self.assertIn("Error parsing YAML", server.config_error)
        self.assertEqual(len(server.project.folders), 1)


class TestDocumentSync(unittest.TestCase):

    def test_did_open_and_did_change_store_text(self):
        server = create_server()
        open_document(server, "a: 1")
        self.assertEqual(server.documents[URI], "a: 1")

        server.handlers["textDocument/didChange"](
            DidChangeTextDocumentParams(
                text_document=VersionedTextDocumentIdentifier(uri=URI, version=2),
                content_changes=[TextDocumentContentChangeWholeDocument(text="a: 2")],
            )
        )
        self.assertEqual(server.documents[URI], "a: 2")


class TestCompletion(unittest.TestCase):

    def setUp(self):
        self.server = create_server()
        self.server.project = Workspace(
            [WorkspaceFolder(name="proj", path=Path("/w")), WorkspaceFolder(name="lib", path=Path("/l"))],
            configuration=Configuration({"user": {"toolchain": {"root": "/opt"}}}),
            environ={"PATH": "/bin", "PAGER": "less", "CXX": "g++"},
        )

    def labels(self, result):
        return [item.label for item in result.items]

    def test_unknown_document_returns_empty(self):
        self.assertEqual(complete(self.server, 0, 0, uri="file:///other.yml").items, [])

    def test_outside_placeholder_returns_empty(self):
        open_document(self.server, "compilerPath: /usr/bin/gcc")
        self.assertEqual(complete(self.server, 0, 20).items, [])

    def test_namespaces_after_open_brace(self):
        text = "compilerPath: ${"
        open_document(self.server, text)
        result = complete(self.server, 0, len(text))
        self.assertEqual(self.labels(result), ["env:", "config:", "workspaceFolder:"])
        self.assertTrue(all(item.kind == CompletionItemKind.Module for item in result.items))

    def test_namespaces_filtered_by_typed_text(self):
        text = "compilerPath: ${work"
        open_document(self.server, text)
        self.assertEqual(self.labels(complete(self.server, 0, len(text))), ["workspaceFolder:"])

    def test_environment_names(self):
        text = "compilerPath: ${env:PA"
        open_document(self.server, text)
        result = complete(self.server, 0, len(text))
        self.assertEqual(self.labels(result), ["PAGER", "PATH"])
        self.assertEqual(result.items[0].kind, CompletionItemKind.Variable)
        self.assertIn("${env:PAGER}", result.items[0].detail)

    def test_environment_names_with_dot_separator(self):
        text = "x: ${env.CX"
        open_document(self.server, text)
        self.assertEqual(self.labels(complete(self.server, 0, len(text))), ["CXX"])

    def test_config_keys_include_loaded_settings_and_document(self):
        # Placeholder typed in a comment so the rest of the document still parses
        text = "CMakeLite:\n  buildDir: out\n# ${config:"
        open_document(self.server, text)
        labels = self.labels(complete(self.server, 2, len("# ${config:")))
        self.assertIn("toolchain.root", labels)
        self.assertIn("CMakeLite.buildDir", labels)

    def test_workspace_folder_names(self):
        text = "x: ${workspaceFolder:"
        open_document(self.server, text)
        self.assertEqual(self.labels(complete(self.server, 0, len(text))), ["proj", "lib"])

    def test_incomplete_yaml_still_completes(self):
        text = "x: [${env:PA"
        open_document(self.server, text)
        self.assertEqual(self.labels(complete(self.server, 0, len(text))), ["PAGER", "PATH"])


class TestHover(unittest.TestCase):

    def setUp(self):
        self.server = create_server()
        self.server.project = Workspace(
            [WorkspaceFolder(name="proj", path=Path("/w"))],
            configuration=Configuration({"user": {"toolchain": {"root": "/opt"}}}),
            environ={"CXX": "/usr/bin/g++"},
            platform="linux",
        )

    def test_hover_shows_resolved_value(self):
        text = "compilerPath: ${env:CXX}"
        open_document(self.server, text)
        result = hover(self.server, 0, text.index("${") + 2)
        self.assertIn("/usr/bin/g++", result.contents.value)
        self.assertEqual(result.range.start.character, text.index("${"))
        self.assertEqual(result.range.end.character, len(text))

    def test_hover_uses_settings_from_document(self):
        text = "tools: /from/doc\ncompilerPath: ${config:tools}/cc"
        open_document(self.server, text)
        result = hover(self.server, 1, len("compilerPath: ${"))
        self.assertIn("/from/doc", result.contents.value)

    def test_hover_falls_back_to_loaded_settings(self):
        text = "compilerPath: ${config:toolchain.root}"
        open_document(self.server, text)
        result = hover(self.server, 0, len("compilerPath: ${"))
        self.assertIn("/opt", result.contents.value)

    def test_hover_on_unresolvable_placeholder(self):
        text = "compilerPath: ${env:NOPE}"
        open_document(self.server, text)
        result = hover(self.server, 0, len("compilerPath: ${"))
        self.assertIn("cannot be resolved", result.contents.value)

    def test_hover_outside_placeholder(self):
        open_document(self.server, "compilerPath: ${env:CXX}")
        self.assertIsNone(hover(self.server, 0, 1))


if __name__ == "__main__":
    unittest.main()
