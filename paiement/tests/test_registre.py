from django.test import TestCase

from abonnement.models import Abonnement
from paiement.exceptions import TransactionDupliquee
from paiement.models import PaymentTransaction
from paiement.services import enregistrer_transaction, finaliser_transaction, marquer_transaction_echouee

from .base import creer_restaurant


class RegistreTransactionsTests(TestCase):

    def setUp(self):
        self.restaurant, self.admin, self.abonnement = creer_restaurant(mode=Abonnement.MOBILE_MONEY)

    def test_couple_provider_transaction_unique(self):
        enregistrer_transaction(self.abonnement, 'airtel_money', 'AIR-1', 'mobile_money')

        with self.assertRaises(TransactionDupliquee):
            enregistrer_transaction(self.abonnement, 'airtel_money', 'AIR-1', 'mobile_money')

        self.assertEqual(
            PaymentTransaction.objects.filter(provider='airtel_money', transaction_id='AIR-1').count(), 1)

    def test_meme_identifiant_autre_provider(self):
        enregistrer_transaction(self.abonnement, 'airtel_money', 'REF-1', 'mobile_money')
        tx = enregistrer_transaction(self.abonnement, 'orange_money', 'REF-1', 'mobile_money')

        self.assertEqual(tx.provider, 'orange_money')
        self.assertEqual(PaymentTransaction.objects.filter(transaction_id='REF-1').count(), 2)

    def test_montant_par_defaut_et_metadata(self):
        tx = enregistrer_transaction(
            self.abonnement, 'airtel_money', 'AIR-2', 'mobile_money', metadata={'phone': '+243812345678'})

        self.assertEqual(tx.amount, self.abonnement.montant_mensuel)
        self.assertEqual(tx.status, PaymentTransaction.PENDING)

        marquer_transaction_echouee(tx, 'refus', {'code': 'TF'})
        self.assertEqual(tx.metadata, {'phone': '+243812345678', 'code': 'TF'})

    def test_transaction_terminee_reste_terminee(self):
        tx = enregistrer_transaction(self.abonnement, 'airtel_money', 'AIR-3', 'mobile_money')

        self.assertTrue(finaliser_transaction(tx))
        self.assertFalse(finaliser_transaction(tx))
        self.assertFalse(marquer_transaction_echouee(tx, 'trop tard'))

        tx.refresh_from_db()
        self.assertEqual(tx.status, PaymentTransaction.COMPLETED)
        self.assertIsNone(tx.failure_reason)
