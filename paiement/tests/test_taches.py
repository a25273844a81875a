from datetime import timedelta
from unittest import mock

from django.test import TestCase, override_settings
from django.utils import timezone

from abonnement.models import Abonnement
from paiement.models import PaymentTransaction
from paiement.providers.airtel_money import AirtelMoneyProvider
from paiement.services import enregistrer_transaction
from paiement.tasks import reconcilier_transactions_en_attente

from .base import MOBILE_MONEY_TEST, creer_restaurant
from .test_mobile_money import REQUEST, faux_airtel


@override_settings(MOBILE_MONEY=MOBILE_MONEY_TEST)
class ReconciliationTests(TestCase):

    def setUp(self):
        self.restaurant, self.admin, self.abonnement = creer_restaurant(mode=Abonnement.MOBILE_MONEY)

    def _vieillir(self, tx, minutes=30):
        PaymentTransaction.objects.filter(pk=tx.pk).update(
            created=timezone.now() - timedelta(minutes=minutes))

    def test_webhook_perdu_rattrape(self):
        tx = enregistrer_transaction(self.abonnement, 'airtel_money', 'AIR-OLD', 'mobile_money')
        self._vieillir(tx)

        with mock.patch(REQUEST, side_effect=faux_airtel(statut='TS')):
            confirmees = reconcilier_transactions_en_attente(15)

        self.assertEqual(confirmees, 1)
        tx.refresh_from_db()
        self.assertEqual(tx.status, PaymentTransaction.COMPLETED)
        self.abonnement.refresh_from_db()
        self.assertEqual(self.abonnement.statut_paiement, Abonnement.VALIDE)

    def test_transactions_recentes_et_especes_ignorees(self):
        enregistrer_transaction(self.abonnement, 'airtel_money', 'AIR-NEW', 'mobile_money')
        cash = enregistrer_transaction(self.abonnement, 'espece', 'CASH-9-ZZZZ9999', 'espece')
        self._vieillir(cash)

        with mock.patch(REQUEST) as req:
            self.assertEqual(reconcilier_transactions_en_attente(15), 0)

        req.assert_not_called()
        self.assertEqual(
            PaymentTransaction.objects.filter(status=PaymentTransaction.PENDING).count(), 2)

    def test_erreur_sur_une_transaction_ne_bloque_pas_les_autres(self):
        autre = creer_restaurant(nom='Chez Papa', mode=Abonnement.MOBILE_MONEY)[2]
        for abonnement, ref in ((self.abonnement, 'AIR-KO'), (autre, 'AIR-OK')):
            self._vieillir(enregistrer_transaction(abonnement, 'airtel_money', ref, 'mobile_money'))

        def verifier(transaction_id):
            if transaction_id == 'AIR-KO':
                raise RuntimeError('timeout')
            return {'success': True}

        with mock.patch.object(AirtelMoneyProvider, 'verify_payment', side_effect=verifier) as verification:
            confirmees = reconcilier_transactions_en_attente(15)

        self.assertEqual(confirmees, 1)
        self.assertEqual(verification.call_count, 2)
