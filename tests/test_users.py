import pytest

from chessmgr.extensions import db
from chessmgr.models import Inscription, Tournament, User, UserRole
from chessmgr.services.errors import NotFoundError, PreconditionError
from chessmgr.services.user import UserService

from conftest import PASSWORD, enroll, make_tournament, make_user


def test_register_normalizes_and_hashes(app_ctx):
    user = UserService.register_user('  Magnus ', ' Magnus@Example.COM ', 'hunter22')

    assert user.name == 'Magnus'
    assert user.email == 'magnus@example.com'
    assert user.role is UserRole.PLAYER
    assert user.rating == 1500
    assert user.password_hash != 'hunter22'
    assert user.check_password('hunter22')


@pytest.mark.parametrize('name, email, password, message', [
    ('', 'a@b.co', 'secret1', 'required'),
    ('Ann', 'not-an-email', 'secret1', 'email format'),
    ('Ann', 'ann@example.com', '12345', 'at least 6'),
])
def test_register_validation(app_ctx, name, email, password, message):
    with pytest.raises(PreconditionError, match=message):
        UserService.register_user(name, email, password)


def test_register_rejects_duplicate_email(app_ctx):
    make_user('Ann', email='ann@example.com')
    with pytest.raises(PreconditionError, match='already in use'):
        UserService.register_user('Other Ann', 'ANN@example.com', 'secret1')


def test_authenticate(app_ctx):
    user = make_user('Judit', email='judit@example.com')

    assert UserService.authenticate('JUDIT@example.com', PASSWORD).id == user.id
    assert UserService.authenticate('judit@example.com', 'wrong-password') is None
    assert UserService.authenticate('nobody@example.com', PASSWORD) is None


def test_update_user_fields(app_ctx):
    user = make_user('Bobby')
    make_user('Taken', email='taken@example.com')

    with pytest.raises(PreconditionError, match='already in use'):
        UserService.update_user(user.id, {'email': 'taken@example.com'})
    with pytest.raises(PreconditionError, match='between'):
        UserService.update_user(user.id, {'rating': 5000})
    with pytest.raises(PreconditionError, match='cannot be edited'):
        UserService.update_user(user.id, {'is_deleted': True})

    updated = UserService.update_user(user.id, {'name': 'Bobby F', 'rating': 2785, 'role': 'admin'})
    assert (updated.name, updated.rating, updated.role) == ('Bobby F', 2785, UserRole.ADMIN)


def test_list_users_hides_deleted(app_ctx):
    keep = make_user('Keep', rating=1800)
    gone = make_user('Gone', rating=2000)
    UserService.delete_user(gone.id)

    assert [u.id for u in UserService.list_users()] == [keep.id]


def test_soft_delete_anonymizes_and_transfers(app_ctx):
    admin = make_user('Admin', role=UserRole.ADMIN)
    author = make_user('Author', email='author@example.com')
    owned = make_tournament(creator=author)
    entered = make_tournament('Entered')
    enroll(entered, author)
    author_id = author.id

    UserService.delete_user(author_id)

    db.session.expire_all()
    user = db.session.get(User, author_id)
    assert user.is_deleted
    assert user.deleted_at is not None
    assert user.original_name == 'Author'
    assert user.email.startswith(f"deleted_{author_id}_")
    assert user.email.endswith('@system.internal')
    assert not user.check_password(PASSWORD)
    assert user.display_name == f"Deleted user #{author_id}"
    assert db.session.get(Tournament, owned.id).created_by == admin.id
    assert db.session.query(Inscription).filter_by(user_id=author_id).count() == 0

    with pytest.raises(NotFoundError):
        UserService.get_user(author_id)
    assert UserService.get_user(author_id, include_deleted=True).id == author_id
    assert UserService.authenticate('author@example.com', PASSWORD) is None


def test_soft_delete_without_admin_orphans_tournaments(app_ctx):
    author = make_user('Solo')
    owned = make_tournament(creator=author)

    UserService.delete_user(author.id)

    db.session.expire_all()
    assert db.session.get(Tournament, owned.id).created_by is None


def test_delete_unknown_user(app_ctx):
    with pytest.raises(NotFoundError):
        UserService.delete_user('missing')
