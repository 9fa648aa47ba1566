from urllib.parse import urlsplit

import pytest

from nearbuild.errors import BuildError
from nearbuild.source_id import CanonicalUrl, GitReference, SourceId, SourceKind

REV = "10415b1359c74b0d5774ce08b114f2bd1a85445d"


@pytest.mark.parametrize(
    "full_rev_url, remote_path_exp",
    [
        (
            f"git+https://github.com/repo/sample_no_workspace.git?rev={REV}",
            "/repo/sample_no_workspace.git",
        ),
        (
            f"git+https://github.com/repo/sample_no_workspace?rev={REV}",
            "/repo/sample_no_workspace",
        ),
    ],
)
def test_source_id_from_url(full_rev_url, remote_path_exp):
    source_id = SourceId.from_url(full_rev_url)
    assert source_id.kind == SourceKind(GitReference(REV))
    assert source_id.kind.reference.rev == REV
    assert urlsplit(source_id.url).path == remote_path_exp


@pytest.mark.parametrize(
    "remote_url, full_rev_url_exp",
    [
        (
            "https://github.com/repo/sample_no_workspace.git",
            f"git+https://github.com/repo/sample_no_workspace.git?rev={REV}",
        ),
        (
            "https://github.com/repo/sample_no_workspace",
            f"git+https://github.com/repo/sample_no_workspace?rev={REV}",
        ),
    ],
)
def test_for_git(remote_url, full_rev_url_exp):
    source_id = SourceId.for_git(remote_url, GitReference(REV))
    assert source_id.as_url() == full_rev_url_exp
    assert str(source_id) == full_rev_url_exp


def test_round_trip_with_precise():
    text = f"git+https://github.com/repo/sample?rev={REV}#abc"
    source_id = SourceId.from_url(text)
    assert source_id.precise == "abc"
    assert source_id.as_url() == text
    assert SourceId.from_url(source_id.as_url()) == source_id


def test_precise_absent_without_fragment():
    source_id = SourceId.from_url(f"git+https://github.com/repo/sample?rev={REV}")
    assert source_id.precise is None
    assert "#" not in source_id.as_url()


def test_missing_rev_uses_placeholder():
    source_id = SourceId.from_url("git+https://github.com/repo/sample")
    assert source_id.kind.reference.rev == "WRONG_REV"


def test_from_url_without_plus_fails():
    with pytest.raises(BuildError, match="invalid source"):
        SourceId.from_url("https://github.com/repo/sample")


def test_from_url_unsupported_protocol():
    with pytest.raises(BuildError, match="unsupported source protocol: registry"):
        SourceId.from_url("registry+https://example.com/index")


def test_from_url_relative_url_fails():
    with pytest.raises(BuildError, match="invalid url"):
        SourceId.from_url("git+repo/sample")


def test_equality_ignores_git_suffix_and_precise():
    a = SourceId.for_git("https://github.com/repo/sample.git", GitReference(REV))
    b = SourceId.for_git("https://github.com/Repo/Sample/", GitReference(REV))
    b = b.with_git_precise("frag")
    assert a == b
    assert hash(a) == hash(b)


def test_different_revisions_differ_and_order_by_kind():
    a = SourceId.for_git("https://github.com/repo/sample", GitReference("aaa"))
    b = SourceId.for_git("https://github.com/repo/sample", GitReference("bbb"))
    assert a != b
    assert a < b
    assert sorted([b, a]) == [a, b]


def test_canonical_url_strips_git_and_lowercases_github():
    assert CanonicalUrl("https://github.com/Repo/Sample.git") == CanonicalUrl(
        "http://github.com/repo/sample"
    )
    assert str(CanonicalUrl("https://github.com/Repo/Sample.git")) == (
        "https://github.com/repo/sample"
    )


def test_canonical_url_keeps_case_for_other_hosts():
    assert CanonicalUrl("https://example.com/Repo") != CanonicalUrl("https://example.com/repo")


def test_canonical_url_strips_trailing_slash():
    assert CanonicalUrl("https://example.com/repo/") == CanonicalUrl("https://example.com/repo")


def test_canonical_url_cannot_be_a_base():
    with pytest.raises(BuildError, match="cannot-be-a-base"):
        CanonicalUrl("github.com:rust-lang/rustfmt.git")


def test_pretty_ref_plain_and_encoded():
    reference = GitReference("a b/c")
    assert reference.pretty_ref(False) == "rev=a b/c"
    assert reference.pretty_ref(True) == "rev=a+b%2Fc"


def test_as_url_encoded():
    source_id = SourceId.for_git("https://github.com/repo/sample", GitReference("x y"))
    assert source_id.as_url(True) == "git+https://github.com/repo/sample?rev=x+y"


def test_from_query_takes_last_rev():
    reference = GitReference.from_query([("rev", "one"), ("other", "x"), ("rev", "two")])
    assert reference == GitReference("two")


def test_protocol_is_git():
    assert SourceKind(GitReference(REV)).protocol() == "git"