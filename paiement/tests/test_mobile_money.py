from unittest import mock

import requests
from django.test import TestCase, override_settings

from abonnement.models import Abonnement
from paiement.exceptions import ValidationPaiementError
from paiement.models import PaymentTransaction
from paiement.providers.mobile_money import normaliser_telephone, valider_telephone
from paiement.services import MobileMoneyService, verifier_otp_et_confirmer

from .base import MOBILE_MONEY_TEST, creer_restaurant, reponse_http

REQUEST = 'paiement.providers.mobile_money.requests.request'


def faux_airtel(succes=True, statut='TS'):
    def _request(method, url, **kwargs):
        if url.endswith('/auth/oauth2/token'):
            return reponse_http(200, {'access_token': 'tok-airtel'})
        if method == 'POST' and url.endswith('/standard/v1/payments'):
            return reponse_http(200, {
                'status': {'success': succes, 'code': 'DP00800001001', 'message': 'refus' if not succes else 'ok'},
                'data': {'transaction': {'id': 'AIR-123'}},
            })
        return reponse_http(200, {'data': {'transaction': {'status': statut}}})
    return _request


def faux_orange(statut='SUCCESS'):
    def _request(method, url, **kwargs):
        if url.endswith('/oauth/v3/token'):
            return reponse_http(200, {'access_token': 'tok-orange'})
        if method == 'POST' and url.endswith('/webpayment'):
            return reponse_http(201, {'pay_token': 'PT-999', 'payment_url': 'https://om.test/pay/PT-999'})
        return reponse_http(200, {'status': statut})
    return _request


class TelephoneTests(TestCase):

    def test_normalisation_vers_format_international(self):
        self.assertEqual(normaliser_telephone('0812345678'), '+243812345678')
        self.assertEqual(normaliser_telephone('243812345678'), '+243812345678')
        self.assertEqual(normaliser_telephone('+243812345678'), '+243812345678')

    def test_numero_invalide_refuse(self):
        for numero in ('12345', '+33612345678', '08123456789', ''):
            with self.assertRaises(ValidationPaiementError):
                valider_telephone(numero)


@override_settings(MOBILE_MONEY=MOBILE_MONEY_TEST)
class InitiationMobileMoneyTests(TestCase):

    def setUp(self):
        self.restaurant, self.admin, self.abonnement = creer_restaurant(mode=Abonnement.MOBILE_MONEY)

    def test_telephone_invalide_avant_tout_appel(self):
        with mock.patch(REQUEST) as req:
            with self.assertRaises(ValidationPaiementError):
                MobileMoneyService().initiate_payment(self.abonnement, '12345', 'airtel_money')
        req.assert_not_called()
        self.assertFalse(PaymentTransaction.objects.exists())

    def test_airtel_initiation_reussie(self):
        with mock.patch(REQUEST, side_effect=faux_airtel()):
            result = MobileMoneyService().initiate_payment(self.abonnement, '0812345678', 'airtel_money')

        self.assertTrue(result['success'])
        self.assertTrue(result['requires_otp'])
        self.assertEqual(result['transaction_id'], 'AIR-123')
        tx = PaymentTransaction.objects.get()
        self.assertEqual(tx.transaction_id, 'AIR-123')
        self.assertEqual(tx.status, PaymentTransaction.PENDING)
        self.assertEqual(tx.customer_phone, '+243812345678')
        self.assertTrue(tx.metadata['reference_interne'].startswith('ATL-'))
        self.abonnement.refresh_from_db()
        self.assertIsNotNone(self.abonnement.otp_code)

    def test_airtel_montant_en_centimes(self):
        with mock.patch(REQUEST, side_effect=faux_airtel()) as req:
            MobileMoneyService().initiate_payment(self.abonnement, '0812345678', 'airtel_money')
        appel_paiement = req.call_args_list[1]
        self.assertEqual(appel_paiement.kwargs['json']['transaction']['amount'], '5000000')
        self.assertEqual(appel_paiement.kwargs['headers']['X-Country'], 'CD')

    def test_airtel_refus_marque_la_transaction_en_echec(self):
        with mock.patch(REQUEST, side_effect=faux_airtel(succes=False)):
            result = MobileMoneyService().initiate_payment(self.abonnement, '0812345678', 'airtel_money')

        self.assertFalse(result['success'])
        tx = PaymentTransaction.objects.get()
        self.assertEqual(tx.status, PaymentTransaction.FAILED)

    def test_timeout_marque_la_transaction_en_echec(self):
        def _request(method, url, **kwargs):
            if url.endswith('/auth/oauth2/token'):
                return reponse_http(200, {'access_token': 'tok'})
            raise requests.Timeout()

        with mock.patch(REQUEST, side_effect=_request):
            result = MobileMoneyService().initiate_payment(self.abonnement, '0812345678', 'airtel_money')

        self.assertFalse(result['success'])
        self.assertEqual(PaymentTransaction.objects.get().status, PaymentTransaction.FAILED)
        self.abonnement.refresh_from_db()
        self.assertEqual(self.abonnement.statut_paiement, Abonnement.EN_ATTENTE)

    def test_orange_initiation_reussie(self):
        with mock.patch(REQUEST, side_effect=faux_orange()):
            result = MobileMoneyService().initiate_payment(self.abonnement, '+243812345678', 'orange_money')

        self.assertTrue(result['success'])
        self.assertEqual(result['payment_url'], 'https://om.test/pay/PT-999')
        tx = PaymentTransaction.objects.get()
        self.assertTrue(tx.transaction_id.startswith('OM-'))
        self.assertEqual(tx.metadata['pay_token'], 'PT-999')

    @override_settings(MOBILE_MONEY={'orange_money': {'api_url': 'https://om.test'}})
    def test_configuration_manquante(self):
        with mock.patch(REQUEST) as req:
            result = MobileMoneyService().initiate_payment(self.abonnement, '0812345678', 'orange_money')

        self.assertFalse(result['success'])
        self.assertEqual(result['error_type'], 'configuration')
        req.assert_not_called()
        self.assertFalse(PaymentTransaction.objects.exists())


@override_settings(MOBILE_MONEY=MOBILE_MONEY_TEST)
class VerificationMobileMoneyTests(TestCase):

    def setUp(self):
        self.restaurant, self.admin, self.abonnement = creer_restaurant(mode=Abonnement.MOBILE_MONEY)

    def _initier(self, provider, faux):
        with mock.patch(REQUEST, side_effect=faux):
            return MobileMoneyService().initiate_payment(self.abonnement, '0812345678', provider)

    def test_orange_succes_active_l_abonnement(self):
        result = self._initier('orange_money', faux_orange())
        with mock.patch(REQUEST, side_effect=faux_orange('SUCCESSFUL')):
            verif = MobileMoneyService().verify_payment(result['transaction_id'], 'orange_money')

        self.assertTrue(verif['success'])
        tx = PaymentTransaction.objects.get()
        self.assertEqual(tx.status, PaymentTransaction.COMPLETED)
        self.assertIsNotNone(tx.processed_at)
        self.abonnement.refresh_from_db()
        self.assertEqual(self.abonnement.statut_paiement, Abonnement.VALIDE)
        self.assertEqual(self.abonnement.numero_transaction, tx.transaction_id)
        self.admin.refresh_from_db()
        self.assertTrue(self.admin.is_active)

    def test_airtel_echec_tf(self):
        result = self._initier('airtel_money', faux_airtel())
        with mock.patch(REQUEST, side_effect=faux_airtel(statut='TF')):
            verif = MobileMoneyService().verify_payment(result['transaction_id'], 'airtel_money')

        self.assertFalse(verif['success'])
        self.assertEqual(PaymentTransaction.objects.get().status, PaymentTransaction.FAILED)
        self.abonnement.refresh_from_db()
        self.assertEqual(self.abonnement.statut_paiement, Abonnement.EN_ATTENTE)

    def test_statut_inconnu_reste_en_attente(self):
        result = self._initier('airtel_money', faux_airtel())
        with mock.patch(REQUEST, side_effect=faux_airtel(statut='TIP')):
            verif = MobileMoneyService().verify_payment(result['transaction_id'], 'airtel_money')

        self.assertFalse(verif['success'])
        self.assertEqual(PaymentTransaction.objects.get().status, PaymentTransaction.PENDING)

    def test_otp_incorrect_ne_confirme_rien(self):
        self._initier('airtel_money', faux_airtel())
        self.abonnement.refresh_from_db()
        mauvais = '000000' if self.abonnement.otp_code != '000000' else '111111'
        with mock.patch(REQUEST) as req:
            with self.assertRaises(ValidationPaiementError):
                verifier_otp_et_confirmer(self.abonnement, mauvais)
        req.assert_not_called()

    def test_otp_correct_puis_statut_fournisseur(self):
        self._initier('airtel_money', faux_airtel())
        self.abonnement.refresh_from_db()
        with mock.patch(REQUEST, side_effect=faux_airtel(statut='TS')):
            result = verifier_otp_et_confirmer(self.abonnement, self.abonnement.otp_code)

        self.assertTrue(result['success'])
        self.abonnement.refresh_from_db()
        self.assertEqual(self.abonnement.statut_paiement, Abonnement.VALIDE)

    def test_otp_correct_mais_paiement_non_confirme(self):
        self._initier('airtel_money', faux_airtel())
        self.abonnement.refresh_from_db()
        with mock.patch(REQUEST, side_effect=faux_airtel(statut='TIP')):
            result = verifier_otp_et_confirmer(self.abonnement, self.abonnement.otp_code)

        self.assertFalse(result['success'])
        self.abonnement.refresh_from_db()
        self.assertEqual(self.abonnement.statut_paiement, Abonnement.EN_ATTENTE)
