import os
import unittest
from unittest import mock

from hustle_tracker.parser import (
    BROWSER,
    EDITOR,
    FILE_MANAGER,
    TERMINAL,
    app_kind,
    detect_language,
    detect_service,
    extract_tmux_window,
    parse_window_title,
    project_name_from_path,
)


class ParserTestCase(unittest.TestCase):
    def setUp(self) -> None:
        patcher = mock.patch.dict(os.environ, {"HOME": "/home/tester"})
        patcher.start()
        self.addCleanup(patcher.stop)


class BrowserTitleTests(ParserTestCase):
    def test_notification_count_and_service_are_extracted(self) -> None:
        parsed = parse_window_title("firefox", "(11) WhatsApp Business — Mozilla Firefox")

        self.assertEqual(parsed.browser_notification_count, 11)
        self.assertEqual(parsed.browser_page_title, "WhatsApp Business")
        self.assertEqual(parsed.browser_url, "WhatsApp")
        self.assertTrue(parsed.parsing_success)

    def test_title_without_count_keeps_inner_dashes(self) -> None:
        parsed = parse_window_title("chrome", "GitHub - owner/repo — Google Chrome")

        self.assertIsNone(parsed.browser_notification_count)
        self.assertEqual(parsed.browser_page_title, "GitHub - owner/repo")
        self.assertEqual(parsed.browser_url, "GitHub")

    def test_unknown_service_leaves_url_unset(self) -> None:
        parsed = parse_window_title("firefox", "Quarterly planning — Mozilla Firefox")

        self.assertEqual(parsed.browser_page_title, "Quarterly planning")
        self.assertIsNone(parsed.browser_url)


class TerminalTitleTests(ParserTestCase):
    def test_user_host_and_directory(self) -> None:
        parsed = parse_window_title(
            "gnome-terminal", "adolfo@adolfo-ubuntu-pro25: /srv/rs/neura-hustle-tracker"
        )

        self.assertEqual(parsed.terminal_username, "adolfo")
        self.assertEqual(parsed.terminal_hostname, "adolfo-ubuntu-pro25")
        self.assertEqual(parsed.terminal_directory, "/srv/rs/neura-hustle-tracker")
        self.assertEqual(parsed.terminal_project_name, "neura-hustle-tracker")
        self.assertTrue(parsed.parsing_success)

    def test_tilde_is_expanded_against_home(self) -> None:
        parsed = parse_window_title("gnome-terminal", "me@box: ~/work/api")

        self.assertEqual(parsed.terminal_directory, "/home/tester/work/api")
        self.assertEqual(parsed.terminal_project_name, "api")

    def test_tmux_window_is_recorded_with_directory(self) -> None:
        parsed = parse_window_title("terminal", "tmux: editor - ~/proj")

        self.assertEqual(parsed.tmux_window_name, "editor")
        self.assertEqual(parsed.terminal_multiplexer, "tmux")
        self.assertEqual(parsed.terminal_directory, "/home/tester/proj")
        self.assertEqual(parsed.terminal_project_name, "proj")

    def test_title_without_path_fails_parsing(self) -> None:
        parsed = parse_window_title("gnome-terminal", "Terminal")

        self.assertFalse(parsed.has_fields())
        self.assertFalse(parsed.parsing_success)


class TmuxExtractionTests(unittest.TestCase):
    def test_colon_prefix(self) -> None:
        self.assertEqual(extract_tmux_window("tmux: editor - ~/proj"), ("~/proj", "editor"))

    def test_bracket_pipe(self) -> None:
        self.assertEqual(
            extract_tmux_window("[tmux] logs | user@host: /var/log"),
            ("user@host: /var/log", "logs"),
        )

    def test_parenthesized_suffix(self) -> None:
        self.assertEqual(extract_tmux_window("vim main.rs - tmux (dev)"), ("vim main.rs", "dev"))

    def test_plain_suffix(self) -> None:
        self.assertEqual(extract_tmux_window("server - tmux"), ("", "server"))

    def test_bracketed_name(self) -> None:
        self.assertEqual(extract_tmux_window("tmux [build] ~/src"), ("~/src", "build"))

    def test_window_word_before_tmux_terminal(self) -> None:
        self.assertEqual(extract_tmux_window("dev - Alacritty tmux"), ("Alacritty tmux", "dev"))

    def test_title_without_tmux_is_untouched(self) -> None:
        self.assertEqual(extract_tmux_window("me@box: /srv"), ("me@box: /srv", None))


class EditorTitleTests(ParserTestCase):
    def test_parenthesized_path(self) -> None:
        parsed = parse_window_title(
            "texteditor", "commands.md (/srv/rs/neura-hustle-tracker) - Text Editor"
        )

        self.assertEqual(parsed.editor_filename, "commands.md")
        self.assertEqual(parsed.editor_filepath, "/srv/rs/neura-hustle-tracker")
        self.assertEqual(parsed.editor_project_path, "neura-hustle-tracker")
        self.assertEqual(parsed.editor_language, "Markdown")

    def test_modified_marker_is_stripped(self) -> None:
        parsed = parse_window_title("gedit", "*notes.py (~/scratch) - gedit")

        self.assertEqual(parsed.editor_filename, "notes.py")
        self.assertEqual(parsed.editor_language, "Python")

    def test_slash_separated_path(self) -> None:
        parsed = parse_window_title("kate", "src/main.py - Kate")

        self.assertEqual(parsed.editor_filename, "main.py")
        self.assertEqual(parsed.editor_filepath, "src")
        self.assertEqual(parsed.editor_language, "Python")

    def test_ide_layout(self) -> None:
        parsed = parse_window_title(
            "vscode", "● parser.py - hustle-tracker - Visual Studio Code"
        )

        self.assertEqual(parsed.editor_filename, "parser.py")
        self.assertEqual(parsed.ide_file_open, "parser.py")
        self.assertEqual(parsed.ide_project_name, "hustle-tracker")
        self.assertEqual(parsed.ide_workspace, "hustle-tracker")
        self.assertEqual(parsed.editor_language, "Python")


class FileManagerTitleTests(ParserTestCase):
    def test_file_url(self) -> None:
        parsed = parse_window_title("file-manager", "file:///home/tester/Documents/reports")

        self.assertEqual(parsed.terminal_directory, "/home/tester/Documents/reports")
        self.assertEqual(parsed.terminal_project_name, "reports")

    def test_home_shortcut(self) -> None:
        parsed = parse_window_title("file-manager", "~")

        self.assertEqual(parsed.terminal_directory, "/home/tester")
        self.assertEqual(parsed.terminal_project_name, "Home")

    def test_display_name_is_not_a_path(self) -> None:
        parsed = parse_window_title("file-manager", "Downloads")

        self.assertFalse(parsed.parsing_success)


class RoutingTests(ParserTestCase):
    def test_app_kinds(self) -> None:
        self.assertEqual(app_kind("firefox"), BROWSER)
        self.assertEqual(app_kind("gnome-terminal"), TERMINAL)
        self.assertEqual(app_kind("vscode"), EDITOR)
        self.assertEqual(app_kind("file-manager"), FILE_MANAGER)
        self.assertIsNone(app_kind("slack"))

    def test_unrouted_app_succeeds_without_fields(self) -> None:
        parsed = parse_window_title("slack", "general | Acme - Slack")

        self.assertFalse(parsed.has_fields())
        self.assertTrue(parsed.parsing_success)

    def test_routed_app_without_title_fails(self) -> None:
        self.assertFalse(parse_window_title("firefox", None).parsing_success)


class HelperTests(ParserTestCase):
    def test_detect_language(self) -> None:
        self.assertEqual(detect_language("MAIN.RS"), "Rust")
        self.assertEqual(detect_language("app.tsx"), "React TypeScript")
        self.assertIsNone(detect_language("Makefile"))
        self.assertIsNone(detect_language("archive.xyz"))

    def test_detect_service_prefers_first_match(self) -> None:
        self.assertEqual(detect_service("Inbox - Gmail"), "Gmail")
        self.assertEqual(detect_service("Home / X.com"), "Twitter/X")
        self.assertIsNone(detect_service("Untitled"))

    def test_project_name_from_path(self) -> None:
        self.assertEqual(project_name_from_path("/home/tester"), "Home")
        self.assertEqual(project_name_from_path("~"), "Home")
        self.assertEqual(project_name_from_path("/home/tester/work/api"), "api")
        self.assertEqual(project_name_from_path("/srv/rs/neura-hustle-tracker"), "neura-hustle-tracker")
        self.assertEqual(project_name_from_path("/opt/2024"), "opt")
        self.assertIsNone(project_name_from_path("/usr/bin"))


if __name__ == "__main__":
    unittest.main()
