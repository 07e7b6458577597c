import pytest

from letterman_sync.errors import UserError
from letterman_sync.validators import (
    format_validation_error,
    require_location,
    validate_content_path,
    validate_repository,
    validate_title,
)


def test_format_validation_error():
    assert format_validation_error("Path", "cannot be empty") == (
        "Path cannot be empty"
    )


@pytest.mark.parametrize(
    "repository",
    ["org/repo", "my-org/my.repo", "a_b/c-d", "Org123/Repo_4"],
)
def test_valid_repositories(repository):
    assert validate_repository(repository) == (True, "")


@pytest.mark.parametrize(
    "repository",
    ["", "  ", "repo", "org/", "/repo", "a/b/c", "org/re po", "../repo", "org/.."],
)
def test_invalid_repositories(repository):
    ok, message = validate_repository(repository)
    assert ok is False
    assert message.startswith("Repository")


@pytest.mark.parametrize(
    "path", ["hello.md", "posts/2024/hello.md", "docs/my post.md"]
)
def test_valid_paths(path):
    assert validate_content_path(path) == (True, "")


@pytest.mark.parametrize(
    "path", ["", " ", "/abs.md", "dir/", "a//b.md", "../x.md", "a/./b.md"]
)
def test_invalid_paths(path):
    ok, message = validate_content_path(path)
    assert ok is False
    assert message.startswith("Path")


def test_validate_title():
    assert validate_title("Hello") == (True, "")
    assert validate_title("   ")[0] is False
    assert validate_title("")[0] is False


def test_require_location():
    require_location("org/repo", "posts/a.md")
    with pytest.raises(UserError, match="Repository"):
        require_location("bad", "posts/a.md")
    with pytest.raises(UserError, match="Path"):
        require_location("org/repo", "/posts/a.md")
