"""
tests/test_service.py -- Facade behaviour of core/service.py.

Every operation is exercised through SocialService, the same entry point the
API and CLI use, against an in-memory store.

Coverage:
  - Toggle idempotence and the U1/B1/U2 like/ownership scenario
  - Ownership enforcement leaves resources unmodified
  - NotFound is reported before any ownership check
  - Registration order, duplicate accounts, login field disambiguation
  - Password change stores a verifiable hash; over-long passwords are refused
  - Follow policy switches (self-follow, duplicate follow)
  - Delete policy switches (cascade, restrict)
  - Comment parent must exist on the same blog
  - Blank content is stored unless require_content is set
  - Ids outside the storable range are NotFound
  - Unexpected exceptions become UNKNOWN envelopes
"""

from __future__ import annotations

import pytest
from conftest import PASSWORD, make_service, new_blog, register

from core.errors import ErrorKind
from core.models import BlogDetail, UserProfile
from core.service import Envelope, SocialService


def _error(env: Envelope) -> tuple[str, str]:
    assert env.error is not None, f"expected an error, got {env.value!r}"
    return env.error.kind.value, env.error.field


# ---------------------------------------------------------------------------
# Envelope shape
# ---------------------------------------------------------------------------


class TestEnvelope:
    def test_success_shape(self, service: SocialService) -> None:
        env = service.register("alice", "alice@example.com", PASSWORD)
        body = env.to_dict()
        assert body["error"] is None
        assert body["user"].username == "alice"

    def test_error_shape(self, service: SocialService) -> None:
        body = service.get_user(42).to_dict()
        assert body == {
            "error": {"code": "not_found", "field": "id", "message": "User not found"},
            "user": None,
        }

    def test_destructive_ops_default_to_false(self, service: SocialService) -> None:
        assert service.delete_blog(1, 1).to_dict() == {
            "error": {"code": "not_found", "field": "id", "message": "Blog not found"},
            "deleted": False,
        }

    def test_unexpected_exception_becomes_unknown(self, service: SocialService, monkeypatch) -> None:
        def boom():
            raise RuntimeError("connection reset")

        monkeypatch.setattr(service.store, "list_users", boom)
        env = service.get_all_users()
        assert env.error.kind is ErrorKind.UNKNOWN
        assert env.error.message == "connection reset"
        assert env.value is None


# ---------------------------------------------------------------------------
# Likes and the ownership scenario
# ---------------------------------------------------------------------------


class TestLikesAndOwnership:
    def test_scenario_like_twice_then_foreign_update(self, service: SocialService) -> None:
        u1 = register(service, "user1")
        u2 = register(service, "user2")
        b1 = new_blog(service, u1, title="Original")

        assert service.toggle_like(b1, u1).value is True
        assert service.toggle_like(b1, u1).value is False

        env = service.update_blog(b1, "Hijacked", "", "body", [], u2)
        assert _error(env) == ("unauthorized", "userId")
        assert env.error.message == "User not authorized"
        assert service.store.get_blog(b1).title == "Original"

    def test_toggle_results_are_complementary(self, service: SocialService) -> None:
        u1 = register(service, "user1")
        u2 = register(service, "user2")
        b1 = new_blog(service, u1)
        service.toggle_like(b1, u2)
        before = service.store.list_likes(b1)
        first = service.toggle_like(b1, u2).value
        second = service.toggle_like(b1, u2).value
        assert {first, second} == {True, False}
        assert service.store.list_likes(b1) == before

    def test_like_missing_blog_then_missing_user(self, service: SocialService) -> None:
        u1 = register(service, "user1")
        b1 = new_blog(service, u1)
        assert _error(service.toggle_like(999, 999)) == ("not_found", "blogId")
        assert _error(service.toggle_like(b1, 999)) == ("not_found", "userId")
        assert service.toggle_like(b1, 999).value is False

    def test_foreign_actor_cannot_touch_comment(self, service: SocialService) -> None:
        u1 = register(service, "user1")
        u2 = register(service, "user2")
        b1 = new_blog(service, u1)
        c1 = service.create_comment(b1, "mine", u1).value.id

        assert _error(service.update_comment(c1, "theirs", u2)) == ("unauthorized", "userId")
        assert _error(service.delete_comment(c1, u2)) == ("unauthorized", "userId")
        assert _error(service.delete_blog(b1, u2)) == ("unauthorized", "userId")
        assert service.store.get_comment(c1).body == "mine"
        assert service.store.get_blog(b1) is not None

    def test_owner_can_update_and_delete(self, service: SocialService) -> None:
        u1 = register(service, "user1")
        b1 = new_blog(service, u1)
        env = service.update_blog(b1, "New", "d", "new body", [" a ", ""], u1)
        assert env.ok
        assert (env.value.title, env.value.tags) == ("New", [" a ", ""])
        c1 = service.create_comment(b1, "first", u1).value.id
        assert service.update_comment(c1, "edited", u1).value.body == "edited"
        assert service.delete_comment(c1, u1).value is True
        assert service.delete_blog(b1, u1).value is True

    def test_not_found_precedes_authorization(self, service: SocialService) -> None:
        u1 = register(service, "user1")
        assert _error(service.update_blog(999, "t", "", "b", [], u1)) == ("not_found", "id")
        assert _error(service.delete_blog(999, u1)) == ("not_found", "id")
        assert _error(service.update_comment(999, "x", u1)) == ("not_found", "id")
        assert _error(service.delete_comment(999, u1)) == ("not_found", "id")

    def test_ids_beyond_integer_range_are_not_found(self, service: SocialService) -> None:
        u1 = register(service, "user1")
        b1 = new_blog(service, u1)
        huge = 2**70
        assert _error(service.get_blog(huge)) == ("not_found", "id")
        assert _error(service.get_user(-huge)) == ("not_found", "id")
        assert _error(service.get_comments_on_blog(huge)) == ("not_found", "blogId")
        assert _error(service.update_comment(huge, "x", u1)) == ("not_found", "id")
        assert _error(service.toggle_like(huge, u1)) == ("not_found", "blogId")
        assert _error(service.create_comment(b1, "hi", u1, parent_id=huge)) == ("not_found", "parent_id")

    def test_update_blog_validates_after_ownership(self, store) -> None:
        strict = make_service(store, require_content=True)
        u1 = register(strict, "user1")
        u2 = register(strict, "user2")
        b1 = new_blog(strict, u1)
        assert _error(strict.update_blog(b1, "", "", "", [], u2)) == ("unauthorized", "userId")
        assert _error(strict.update_blog(b1, "", "", "b", [], u1)) == ("validation_failed", "title")

    def test_blank_blog_stored_by_default(self, service: SocialService) -> None:
        u1 = register(service, "user1")
        env = service.create_blog("", "", "", [" x", ""], u1)
        assert env.ok
        assert (env.value.title, env.value.body, env.value.tags) == ("", "", [" x", ""])

    def test_strict_create_blog_reports_title_then_body(self, store) -> None:
        strict = make_service(store, require_content=True)
        u1 = register(strict, "user1")
        assert _error(strict.create_blog("", "", "", [], u1)) == ("validation_failed", "title")
        assert _error(strict.create_blog("t", "", "  ", [], u1)) == ("validation_failed", "body")
        assert strict.store.list_blogs() == []


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


class TestAccounts:
    def test_registration_reports_password_first(self, service: SocialService) -> None:
        assert _error(service.register("x", "bad", "ab")) == ("validation_failed", "password")
        assert service.store.list_users() == []

    def test_password_is_hashed(self, service: SocialService) -> None:
        uid = register(service, "alice")
        stored = service.store.get_user(uid).hashed_password
        assert stored != PASSWORD
        assert service.hasher.verify(stored, PASSWORD)

    def test_duplicate_username_and_email(self, service: SocialService) -> None:
        register(service, "alice")
        assert _error(service.register("alice", "new@example.com", PASSWORD)) == ("constraint_violation", "username")
        assert _error(service.register("alice2", "alice@example.com", PASSWORD)) == ("constraint_violation", "email")

    def test_login_by_username_and_email(self, service: SocialService) -> None:
        uid = register(service, "alice")
        assert service.login("alice", PASSWORD).value.id == uid
        assert service.login("alice@example.com", PASSWORD).value.id == uid

    def test_login_not_found_field_matches_lookup(self, service: SocialService) -> None:
        env = service.login("a@b.com", PASSWORD)
        assert _error(env) == ("not_found", "email")
        assert env.error.message == "User not found"
        assert _error(service.login("alice", PASSWORD)) == ("not_found", "username")

    def test_login_wrong_password(self, service: SocialService) -> None:
        register(service, "alice")
        env = service.login("alice", "wrong-password")
        assert _error(env) == ("unauthorized", "password")
        assert env.error.message == "Incorrect password"

    def test_change_password(self, service: SocialService) -> None:
        register(service, "alice")
        assert service.change_password("alice", "brand-new").ok
        assert service.login("alice", "brand-new").ok
        assert not service.login("alice", PASSWORD).ok

    def test_over_long_password_is_a_validation_failure(self, service: SocialService) -> None:
        """36 two-byte characters fit bcrypt's 72-byte input, 37 do not."""
        env = service.register("longpw", "longpw@example.com", "\u00e9" * 37)
        assert _error(env) == ("validation_failed", "password")
        assert service.store.list_users() == []
        assert service.register("longpw", "longpw@example.com", "\u00e9" * 36).ok
        assert _error(service.change_password("longpw", "x" * 80)) == ("validation_failed", "newPassword")
        assert service.login("longpw", "\u00e9" * 36).ok

    def test_change_password_looks_up_before_length(self, service: SocialService) -> None:
        assert _error(service.change_password("ghost@example.com", "x")) == ("not_found", "email")
        register(service, "alice")
        env = service.change_password("alice", "short")
        assert _error(env) == ("validation_failed", "newPassword")
        assert env.error.message == "Password must be at least 6 characters long"

    def test_upload_image(self, service: SocialService) -> None:
        uid = register(service, "alice")
        assert service.upload_image(" avatars/alice.png ", uid).value.image == "avatars/alice.png"
        assert _error(service.upload_image("x.png", 999)) == ("not_found", "userId")
        assert _error(service.upload_image("  ", uid)) == ("validation_failed", "image")

    def test_get_user_profile(self, service: SocialService) -> None:
        u1 = register(service, "user1")
        u2 = register(service, "user2")
        new_blog(service, u1)
        service.follow_user(u1, u2)
        profile = service.get_user(u1).value
        assert isinstance(profile, UserProfile)
        assert [b.user_id for b in profile.blogs] == [u1]
        assert [u.id for u in profile.followers] == [u2]
        assert profile.following == []
        assert len(service.get_all_users().value) == 2


# ---------------------------------------------------------------------------
# Follows
# ---------------------------------------------------------------------------


class TestFollows:
    def test_follow_returns_follower_profile(self, service: SocialService) -> None:
        u1 = register(service, "user1")
        u2 = register(service, "user2")
        env = service.follow_user(u1, u2)
        assert env.value.user.id == u2
        assert [u.id for u in env.value.following] == [u1]

    def test_follow_missing_users(self, service: SocialService) -> None:
        u1 = register(service, "user1")
        assert _error(service.follow_user(999, u1)) == ("not_found", "userId")
        assert _error(service.follow_user(u1, 999)) == ("not_found", "followerId")
        assert _error(service.unfollow_user(u1, 999)) == ("not_found", "followerId")

    def test_second_follow_is_a_noop_by_default(self, service: SocialService) -> None:
        u1 = register(service, "user1")
        u2 = register(service, "user2")
        assert service.follow_user(u1, u2).ok
        assert service.follow_user(u1, u2).ok
        assert len(service.store.list_followers(u1)) == 1

    def test_second_follow_rejected_when_configured(self, store) -> None:
        strict = make_service(store, reject_duplicate_follow=True)
        u1 = register(strict, "user1")
        u2 = register(strict, "user2")
        strict.follow_user(u1, u2)
        assert _error(strict.follow_user(u1, u2)) == ("constraint_violation", "followerId")

    def test_self_follow_rejected_by_default(self, service: SocialService) -> None:
        u1 = register(service, "user1")
        assert _error(service.follow_user(u1, u1)) == ("validation_failed", "followerId")
        assert service.store.list_followers(u1) == []

    def test_self_follow_allowed_when_configured(self, store) -> None:
        lax = make_service(store, allow_self_follow=True)
        u1 = register(lax, "user1")
        assert lax.follow_user(u1, u1).ok
        assert [u.id for u in store.list_followers(u1)] == [u1]

    def test_unfollow(self, service: SocialService) -> None:
        u1 = register(service, "user1")
        u2 = register(service, "user2")
        service.follow_user(u1, u2)
        env = service.unfollow_user(u1, u2)
        assert env.ok and env.value.following == []
        # Unfollowing again is harmless.
        assert service.unfollow_user(u1, u2).ok


# ---------------------------------------------------------------------------
# Comments and blog reads
# ---------------------------------------------------------------------------


class TestComments:
    def test_reply_to_missing_parent(self, service: SocialService) -> None:
        u1 = register(service, "user1")
        b1 = new_blog(service, u1)
        assert _error(service.create_comment(b1, "hi", u1, parent_id=999)) == ("not_found", "parent_id")

    def test_reply_must_stay_on_the_same_blog(self, service: SocialService) -> None:
        u1 = register(service, "user1")
        b1 = new_blog(service, u1, "one")
        b2 = new_blog(service, u1, "two")
        parent = service.create_comment(b1, "root", u1).value.id
        assert _error(service.create_comment(b2, "reply", u1, parent_id=parent)) == (
            "validation_failed",
            "parent_id",
        )

    def test_comment_on_missing_blog_or_user(self, service: SocialService) -> None:
        u1 = register(service, "user1")
        b1 = new_blog(service, u1)
        assert _error(service.create_comment(999, "hi", u1)) == ("not_found", "blogId")
        assert _error(service.create_comment(b1, "hi", 999)) == ("not_found", "userId")
        assert service.create_comment(b1, "", u1).value.body == ""

    def test_strict_comment_must_not_be_blank(self, store) -> None:
        strict = make_service(store, require_content=True)
        u1 = register(strict, "user1")
        b1 = new_blog(strict, u1)
        assert _error(strict.create_comment(b1, "   ", u1)) == ("validation_failed", "comment")
        c1 = strict.create_comment(b1, "hi", u1).value.id
        assert _error(strict.update_comment(c1, "", u1)) == ("validation_failed", "comment")
        assert strict.store.get_comment(c1).body == "hi"

    def test_thread_depth_through_facade(self, service: SocialService) -> None:
        u1 = register(service, "user1")
        b1 = new_blog(service, u1)
        parent = None
        ids = []
        for body in ("root", "child", "grandchild", "great-grandchild"):
            parent = service.create_comment(b1, body, u1, parent_id=parent).value.id
            ids.append(parent)
        roots = service.get_comments_on_blog(b1, roots_only=True).value
        grand = roots[0].children[0].children[0]
        assert grand.comment.id == ids[2]
        assert grand.children is None

    def test_comment_reads_not_found(self, service: SocialService) -> None:
        assert _error(service.get_comments_on_blog(5)) == ("not_found", "blogId")
        assert _error(service.get_comments_of_user(5)) == ("not_found", "userId")

    def test_blog_detail(self, service: SocialService) -> None:
        u1 = register(service, "user1")
        b1 = new_blog(service, u1)
        service.create_comment(b1, "hi", u1)
        service.toggle_like(b1, u1)
        detail = service.get_blog(b1).value
        assert isinstance(detail, BlogDetail)
        assert detail.author.username == "user1"
        assert [c.body for c in detail.comments] == ["hi"]
        assert len(detail.likes) == 1
        listing = service.get_all_blogs().value
        assert listing[0].author.id == u1 and len(listing[0].comments) == 1


# ---------------------------------------------------------------------------
# Delete policy
# ---------------------------------------------------------------------------


class TestDeletePolicy:
    def test_delete_user_cascade(self, service: SocialService) -> None:
        u1 = register(service, "user1")
        b1 = new_blog(service, u1)
        assert service.delete_user(u1).value is True
        assert service.store.get_blog(b1) is None
        assert _error(service.delete_user(u1)) == ("not_found", "userId")

    def test_delete_user_restrict(self, store) -> None:
        strict = make_service(store, delete_policy="restrict")
        u1 = register(strict, "user1")
        new_blog(strict, u1)
        env = strict.delete_user(u1)
        assert _error(env) == ("constraint_violation", "userId")
        assert env.value is False
        assert store.get_user(u1) is not None

    def test_delete_comment_restrict_with_replies(self, store) -> None:
        strict = make_service(store, delete_policy="restrict")
        u1 = register(strict, "user1")
        b1 = new_blog(strict, u1)
        root = strict.create_comment(b1, "root", u1).value.id
        strict.create_comment(b1, "reply", u1, parent_id=root)
        assert _error(strict.delete_comment(root, u1)) == ("constraint_violation", "id")

    @pytest.mark.parametrize("policy", ["cascade", "restrict"])
    def test_delete_policy_property(self, store, policy: str) -> None:
        assert make_service(store, delete_policy=policy).delete_policy.value == policy
