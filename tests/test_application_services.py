import unittest
from decimal import Decimal

from application.services import (
    ExternalContext,
    adjust_player_winnings,
    authenticate_admin,
    load_admin_dashboard,
    load_player,
    parse_amount,
    record_outcome,
    register_account,
    set_max_bet,
    sign_in,
    sign_out,
)
from domain.errors import StoreUnavailable
from domain.models import HouseConfig
from domain.repositories import DocumentStore
from infrastructure.auth.credentials import StaticSecretPolicy
from infrastructure.db.document_repositories import (
    DocumentAccountRepository,
    DocumentHouseConfigRepository,
    DocumentPlayerRepository,
    DocumentSessionRepository,
)
from infrastructure.db.documents import encode_document, to_decimal


class InMemoryDocumentStore(DocumentStore):
    def __init__(self):
        self.collections = {}

    def get(self, collection, document_id):
        document = self.collections.get(collection, {}).get(document_id)
        return dict(document) if document is not None else None

    def set(self, collection, document_id, fields, merge=False):
        documents = self.collections.setdefault(collection, {})
        data = encode_document(fields)
        if merge and document_id in documents:
            documents[document_id].update(data)
        else:
            documents[document_id] = data

    def list_all(self, collection):
        return sorted(
            (doc_id, dict(doc)) for doc_id, doc in self.collections.get(collection, {}).items()
        )

    def delete(self, collection, document_id):
        self.collections.get(collection, {}).pop(document_id, None)

    def increment(self, collection, document_id, field, delta):
        documents = self.collections.setdefault(collection, {})
        document = documents.setdefault(document_id, {})
        new_value = to_decimal(document.get(field)) + delta
        document[field] = str(new_value)
        return new_value


class UnavailableStore(InMemoryDocumentStore):
    """Store whose winnings collection is unreachable."""

    def get(self, collection, document_id):
        if collection == "winnings":
            raise StoreUnavailable("backend offline")
        return super().get(collection, document_id)

    def increment(self, collection, document_id, field, delta):
        if collection == "winnings":
            raise StoreUnavailable("backend offline")
        return super().increment(collection, document_id, field, delta)


class ApplicationServicesTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryDocumentStore()
        self._wire(self.store)
        self.policy = StaticSecretPolicy("4361")
        self.ctx = ExternalContext(
            provider="telegram",
            provider_user_id="12345",
            display_name="John Doe",
        )
        self.admin_ctx = ExternalContext(
            provider="discord",
            provider_user_id="999",
            display_name="Operator",
        )

    def _wire(self, store) -> None:
        self.player_repo = DocumentPlayerRepository(store)
        self.config_repo = DocumentHouseConfigRepository(store)
        self.account_repo = DocumentAccountRepository(store)
        self.session_repo = DocumentSessionRepository(store)

    def _register(self, ctx, email="john@example.com", password="secret1"):
        result = register_account(ctx, email, password, self.account_repo, self.session_repo)
        self.assertTrue(result.success, result.error_message)
        return result

    def _make_admin(self):
        self._register(self.admin_ctx, email="boss@example.com")
        result = authenticate_admin(self.admin_ctx, "4361", self.policy, self.session_repo)
        self.assertTrue(result.success, result.error_message)

    def _record(self, amount, multiplier, is_win, ctx=None):
        return record_outcome(
            ctx or self.ctx,
            Decimal(amount),
            multiplier,
            is_win,
            self.session_repo,
            self.player_repo,
            self.config_repo,
        )

    # Accounts

    def test_register_stores_hashed_password_and_logs_in(self):
        self._register(self.ctx)
        account = self.account_repo.get_by_email("john@example.com")
        self.assertIsNotNone(account)
        self.assertNotEqual(account.password_hash, "secret1")
        session = self.session_repo.get_session("telegram", "12345")
        self.assertEqual(session.email, "john@example.com")
        self.assertFalse(session.is_admin)

    def test_register_rejects_duplicate_email(self):
        self._register(self.ctx)
        other = ExternalContext(provider="telegram", provider_user_id="777")
        result = register_account(other, "JOHN@example.com", "another1", self.account_repo, self.session_repo)
        self.assertFalse(result.success)
        self.assertIn("already in use", result.error_message)

    def test_register_validates_email_and_password(self):
        bad_email = register_account(self.ctx, "not-an-email", "secret1", self.account_repo, self.session_repo)
        short_password = register_account(self.ctx, "a@b.co", "123", self.account_repo, self.session_repo)
        self.assertFalse(bad_email.success)
        self.assertFalse(short_password.success)
        self.assertIsNone(self.account_repo.get_by_email("a@b.co"))

    def test_sign_in_with_wrong_password_fails(self):
        self._register(self.ctx)
        sign_out(self.ctx, self.session_repo)

        result = sign_in(self.ctx, "john@example.com", "wrong-password", self.account_repo, self.session_repo)
        self.assertFalse(result.success)
        self.assertEqual(result.error_message, "Invalid credentials")
        self.assertIsNone(self.session_repo.get_session("telegram", "12345"))

    def test_sign_in_from_another_channel(self):
        self._register(self.ctx)
        other = ExternalContext(provider="discord", provider_user_id="42")
        result = sign_in(other, "john@example.com", "secret1", self.account_repo, self.session_repo)
        self.assertTrue(result.success)
        self.assertIn("john", result.message)

    def test_sign_out_drops_admin_rights(self):
        self._make_admin()
        sign_out(self.admin_ctx, self.session_repo)
        sign_in(self.admin_ctx, "boss@example.com", "secret1", self.account_repo, self.session_repo)
        self.assertFalse(self.session_repo.get_session("discord", "999").is_admin)

    # Player ledger

    def test_load_player_initialises_zero_balance(self):
        self._register(self.ctx)
        self.assertIsNone(self.player_repo.get_player("john"))

        result = load_player(self.ctx, self.session_repo, self.player_repo, self.config_repo)
        self.assertTrue(result.success)
        self.assertEqual(result.player.id, "john")
        self.assertEqual(result.player.balance, Decimal("0"))
        self.assertEqual(result.config.max_bet, Decimal("2"))
        self.assertIsNotNone(self.player_repo.get_player("john"))

    def test_load_player_requires_login(self):
        result = load_player(self.ctx, self.session_repo, self.player_repo, self.config_repo)
        self.assertFalse(result.success)
        self.assertEqual(result.error_message, "Please log in first.")

    def test_record_win_and_loss(self):
        self._register(self.ctx)
        win = self._record("1.5", 2, True)
        self.assertTrue(win.success)
        self.assertEqual(win.balance, Decimal("3.0"))
        self.assertIn("You won $3.00", win.message)

        loss = self._record("1.5", 2, False)
        self.assertEqual(loss.balance, Decimal("0"))
        self.assertIn("You lost $3.00", loss.message)

    def test_bet_above_max_is_clamped(self):
        self._register(self.ctx)
        self.config_repo.save_config(HouseConfig(max_bet=Decimal("2")))

        result = self._record("5", 1, True)
        self.assertTrue(result.success)
        self.assertTrue(result.clamped)
        self.assertEqual(result.bet_amount, Decimal("2"))
        self.assertEqual(result.balance, Decimal("2"))

    def test_negative_bet_and_bad_multiplier_are_rejected(self):
        self._register(self.ctx)
        negative = self._record("-1", 1, True)
        bad_multiplier = self._record("1", 3, True)
        self.assertFalse(negative.success)
        self.assertFalse(bad_multiplier.success)
        self.assertIn("1x, 2x", bad_multiplier.error_message)
        self.assertIsNone(self.player_repo.get_player("john"))

    def test_store_failure_is_reported_not_raised(self):
        store = UnavailableStore()
        self._wire(store)
        self._register(self.ctx)

        result = self._record("1", 1, True)
        self.assertFalse(result.success)
        self.assertIn("Error updating winnings", result.error_message)
        self.assertIn("backend offline", result.error_message)

    # Admin

    def test_admin_secret_mismatch_changes_nothing(self):
        self._register(self.admin_ctx, email="boss@example.com")
        result = authenticate_admin(self.admin_ctx, "1234", self.policy, self.session_repo)
        self.assertFalse(result.success)
        self.assertFalse(self.session_repo.get_session("discord", "999").is_admin)

    def test_admin_requires_login(self):
        result = authenticate_admin(self.admin_ctx, "4361", self.policy, self.session_repo)
        self.assertFalse(result.success)
        self.assertIsNone(self.session_repo.get_session("discord", "999"))

    def test_admin_operations_require_admin_flag(self):
        self._register(self.ctx)
        dashboard = load_admin_dashboard(self.ctx, self.session_repo, self.player_repo, self.config_repo)
        max_bet = set_max_bet(self.ctx, Decimal("10"), self.session_repo, self.config_repo)
        self.assertFalse(dashboard.success)
        self.assertFalse(max_bet.success)
        self.assertEqual(self.config_repo.get_config().max_bet, Decimal("2"))

    def test_set_max_bet(self):
        self._make_admin()
        result = set_max_bet(self.admin_ctx, Decimal("7.5"), self.session_repo, self.config_repo)
        self.assertTrue(result.success)
        self.assertEqual(self.config_repo.get_config().max_bet, Decimal("7.5"))

    def test_negative_max_bet_rejected_and_prior_value_kept(self):
        self._make_admin()
        set_max_bet(self.admin_ctx, Decimal("4"), self.session_repo, self.config_repo)

        result = set_max_bet(self.admin_ctx, Decimal("-1"), self.session_repo, self.config_repo)
        self.assertFalse(result.success)
        self.assertEqual(self.config_repo.get_config().max_bet, Decimal("4"))

    def test_win_adjust_and_house_total_flow(self):
        self._register(self.ctx)
        self._make_admin()
        set_max_bet(self.admin_ctx, Decimal("10"), self.session_repo, self.config_repo)

        win = self._record("5", 2, True)
        self.assertEqual(win.balance, Decimal("10"))

        adjusted = adjust_player_winnings(
            self.admin_ctx, "john", Decimal("-3"), self.session_repo, self.player_repo
        )
        self.assertTrue(adjusted.success)
        self.assertEqual(adjusted.player.balance, Decimal("7"))
        self.assertEqual(adjusted.house_total, Decimal("-7"))

        dashboard = load_admin_dashboard(self.admin_ctx, self.session_repo, self.player_repo, self.config_repo)
        self.assertTrue(dashboard.success)
        self.assertEqual([p.id for p in dashboard.players], ["john"])
        self.assertEqual(dashboard.house_total, Decimal("-7"))
        self.assertEqual(dashboard.max_bet, Decimal("10"))

    def test_repeated_adjustments_are_one_shot_deltas(self):
        self._register(self.ctx)
        self._make_admin()
        load_player(self.ctx, self.session_repo, self.player_repo, self.config_repo)

        for _ in range(2):
            result = adjust_player_winnings(
                self.admin_ctx, "john", Decimal("2.5"), self.session_repo, self.player_repo
            )
        self.assertEqual(result.player.balance, Decimal("5.0"))

    def test_zero_adjustment_keeps_balance(self):
        self._register(self.ctx)
        self._make_admin()
        self._record("1", 1, False)

        result = adjust_player_winnings(self.admin_ctx, "john", Decimal("0"), self.session_repo, self.player_repo)
        self.assertEqual(result.player.balance, Decimal("-1"))
        self.assertEqual(result.house_total, Decimal("1"))

    def test_adjust_unknown_player_fails(self):
        self._make_admin()
        result = adjust_player_winnings(self.admin_ctx, "ghost", Decimal("1"), self.session_repo, self.player_repo)
        self.assertFalse(result.success)
        self.assertEqual(result.error_message, "Player ghost not found.")

    def test_empty_dashboard_has_zero_house_total(self):
        self._make_admin()
        dashboard = load_admin_dashboard(self.admin_ctx, self.session_repo, self.player_repo, self.config_repo)
        self.assertEqual(dashboard.players, [])
        self.assertEqual(dashboard.house_total, Decimal("0"))


class ParseAmountTests(unittest.TestCase):
    def test_parses_decimals_and_dollar_prefix(self):
        self.assertEqual(parse_amount("2.50"), Decimal("2.50"))
        self.assertEqual(parse_amount("$3"), Decimal("3"))
        self.assertEqual(parse_amount("-4"), Decimal("-4"))

    def test_rejects_garbage(self):
        for text in ("", "abc", "nan", "inf", None):
            with self.subTest(text=text):
                self.assertIsNone(parse_amount(text))


if __name__ == "__main__":
    unittest.main()
