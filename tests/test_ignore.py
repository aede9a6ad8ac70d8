import pytest

from hanode.ignore import IgnoreMatcher, compile_rule


def test_blank_lines_and_comments_are_skipped():
    assert compile_rule("") is None
    assert compile_rule("   ") is None
    assert compile_rule("# a comment") is None
    assert compile_rule("\\#not-a-comment").pattern == "#not-a-comment"


def test_basename_pattern_matches_at_any_depth():
    m = IgnoreMatcher("*.log")
    assert m.matches("debug.log")
    assert m.matches("a/b/debug.log")
    assert not m.matches("debug.txt")


def test_star_does_not_cross_directories():
    m = IgnoreMatcher("src/*.js")
    assert m.matches("src/app.js")
    assert not m.matches("src/lib/app.js")


def test_pattern_with_slash_is_anchored():
    m = IgnoreMatcher("doc/frotz", "/root-only")
    assert m.matches("doc/frotz")
    assert not m.matches("a/doc/frotz")
    assert m.matches("root-only")
    assert not m.matches("sub/root-only")


def test_directory_only_pattern():
    m = IgnoreMatcher("build/")
    assert m.matches("build", is_dir=True)
    assert m.matches("build/")
    assert not m.matches("build", is_dir=False)
    assert m.matches("nested/build", is_dir=True)


def test_children_of_excluded_directory_are_excluded():
    m = IgnoreMatcher("build/")
    assert m.matches("build/out.js")
    assert m.matches("pkg/build/deep/out.js")


def test_negation_last_match_wins():
    m = IgnoreMatcher("*.log\n!keep.log\n")
    assert m.matches("debug.log")
    assert not m.matches("keep.log")

    m.add("keep.log")
    assert m.matches("keep.log")


def test_negation_cannot_reinclude_inside_excluded_directory():
    m = IgnoreMatcher("logs/\n!logs/keep.txt\n")
    assert m.matches("logs/keep.txt")


@pytest.mark.parametrize("pattern,path,expected", [
    ("**/foo", "foo", True),
    ("**/foo", "a/b/foo", True),
    ("**/foo/bar", "x/foo/bar", True),
    ("abc/**", "abc/x/y", True),
    ("abc/**", "abc", False),
    ("a/**/b", "a/b", True),
    ("a/**/b", "a/x/y/b", True),
    ("a/**/b", "a/xb", False),
    ("file?.txt", "file1.txt", True),
    ("file?.txt", "file10.txt", False),
    ("[abc].js", "b.js", True),
    ("[!abc].js", "b.js", False),
    ("[!abc].js", "d.js", True),
    ("[!]a].js", "b.js", True),
    ("[!]a].js", "].js", False),
    ("[]a].js", "].js", True),
    ("[]a].js", "b.js", False),
    ("a[.-0]x", "a.x", True),
    ("a[.-0]x", "a/x", False),
])
def test_wildcards(pattern, path, expected):
    assert IgnoreMatcher(pattern).matches(path) is expected


def test_escaped_bang_and_trailing_spaces():
    m = IgnoreMatcher("\\!important\nspaced   \n")
    assert m.matches("!important")
    assert m.matches("spaced")
    assert not m.matches("spaced   ")


def test_later_blocks_extend_earlier_ones():
    m = IgnoreMatcher("*.tmp")
    m.add(["!a.tmp", "node_modules"])
    assert not m.matches("a.tmp")
    assert m.matches("b.tmp")
    assert m.matches("node_modules", is_dir=True)


def test_paths_are_normalised():
    m = IgnoreMatcher("/dist")
    assert m.matches("./dist")
    assert m.matches("dist\\bundle.js")
    assert not m.matches("")
