import json
from unittest import mock

import jwt
from django.test import TestCase, override_settings
from django.urls import reverse

from abonnement.models import Abonnement
from abonnement.signals import abonnement_active
from paiement.models import PaymentTransaction
from paiement.providers.carte import StripeProvider
from paiement.services import enregistrer_transaction

from .base import MOBILE_MONEY_TEST, creer_restaurant, signer_stripe

STRIPE_SECRET_WEBHOOK = 'whsec_test'


class ActivationsMixin:
    """Compte les émissions du signal abonnement_active pendant le test."""

    def ecouter_activations(self):
        activations = []

        def recepteur(sender, abonnement, reference=None, **kwargs):
            activations.append((abonnement.pk, reference))

        abonnement_active.connect(recepteur, weak=False)
        self.addCleanup(abonnement_active.disconnect, recepteur)
        return activations


@override_settings(MOBILE_MONEY=MOBILE_MONEY_TEST)
class WebhookMobileMoneyTests(ActivationsMixin, TestCase):

    def setUp(self):
        self.restaurant, self.admin, self.abonnement = creer_restaurant(mode=Abonnement.MOBILE_MONEY)

    def _post(self, provider, payload, **extra):
        url = reverse('webhook_mobile_money', kwargs={'provider': provider})
        return self.client.post(url, data=json.dumps(payload), content_type='application/json', **extra)

    def test_airtel_succes_livre_deux_fois(self):
        tx = enregistrer_transaction(self.abonnement, 'airtel_money', 'T1', 'mobile_money')
        payload = {'transaction': {'id': 'T1', 'status': 'TS'}}

        activations = self.ecouter_activations()
        premiere = self._post('airtel_money', payload)
        seconde = self._post('airtel_money', payload)

        self.assertEqual(premiere.status_code, 200)
        self.assertEqual(premiere.json(), {'received': True, 'status': 'success'})
        self.assertEqual(seconde.status_code, 200)
        tx.refresh_from_db()
        self.assertEqual(tx.status, PaymentTransaction.COMPLETED)
        self.assertEqual(tx.metadata['webhook_payload']['transaction']['id'], 'T1')
        self.abonnement.refresh_from_db()
        self.assertEqual(self.abonnement.statut_paiement, Abonnement.VALIDE)
        self.assertEqual(self.abonnement.statut, Abonnement.ACTIF)
        self.assertTrue(self.abonnement.est_actif)
        self.admin.refresh_from_db()
        self.assertTrue(self.admin.is_active)
        self.assertEqual(activations, [(self.abonnement.pk, 'T1')])

    def test_airtel_chemin_data_transaction(self):
        tx = enregistrer_transaction(self.abonnement, 'airtel_money', 'T2', 'mobile_money')
        response = self._post('airtel_money', {'data': {'transaction': {'id': 'T2', 'status': 'TS'}}})

        self.assertEqual(response.status_code, 200)
        tx.refresh_from_db()
        self.assertEqual(tx.status, PaymentTransaction.COMPLETED)

    def test_airtel_echec(self):
        tx = enregistrer_transaction(self.abonnement, 'airtel_money', 'T3', 'mobile_money')
        response = self._post('airtel_money', {'transaction': {'id': 'T3', 'status_code': 'TF'}})

        self.assertEqual(response.status_code, 200)
        tx.refresh_from_db()
        self.assertEqual(tx.status, PaymentTransaction.FAILED)
        self.abonnement.refresh_from_db()
        self.assertEqual(self.abonnement.statut_paiement, Abonnement.EN_ATTENTE)

    def test_orange_par_pay_token(self):
        tx = enregistrer_transaction(
            self.abonnement, 'orange_money', 'OM-1-ABC', 'mobile_money', metadata={'pay_token': 'PT-1'})
        response = self._post('orange_money', {'pay_token': 'PT-1', 'status': 'SUCCESS'})

        self.assertEqual(response.status_code, 200)
        tx.refresh_from_db()
        self.assertEqual(tx.status, PaymentTransaction.COMPLETED)

    def test_orange_statut_en_cours_sans_effet(self):
        tx = enregistrer_transaction(self.abonnement, 'orange_money', 'OM-2-ABC', 'mobile_money')
        response = self._post('orange_money', {'order_id': 'OM-2-ABC', 'status': 'INITIATED'})

        self.assertEqual(response.status_code, 200)
        tx.refresh_from_db()
        self.assertEqual(tx.status, PaymentTransaction.PENDING)

    def test_transaction_introuvable(self):
        response = self._post('airtel_money', {'transaction': {'id': 'INCONNU', 'status': 'TS'}})

        self.assertEqual(response.status_code, 400)
        self.assertIn('error', response.json())
        self.abonnement.refresh_from_db()
        self.assertEqual(self.abonnement.statut_paiement, Abonnement.EN_ATTENTE)

    def test_provider_inconnu(self):
        response = self._post('mpesa', {'transaction': {'id': 'T1', 'status': 'TS'}})
        self.assertEqual(response.status_code, 400)

    def test_identifiant_manquant(self):
        response = self._post('airtel_money', {'transaction': {'status': 'TS'}})
        self.assertEqual(response.status_code, 400)

    def test_json_invalide(self):
        url = reverse('webhook_mobile_money', kwargs={'provider': 'airtel_money'})
        response = self.client.post(url, data='pas du json', content_type='application/json')
        self.assertEqual(response.status_code, 400)

    def test_signature_jwt_exigee_si_secret_configure(self):
        config = {k: dict(v) for k, v in MOBILE_MONEY_TEST.items()}
        config['airtel_money']['webhook_secret'] = 'secret-airtel'
        tx = enregistrer_transaction(self.abonnement, 'airtel_money', 'T4', 'mobile_money')

        with override_settings(MOBILE_MONEY=config):
            sans_signature = self._post('airtel_money', {'transaction': {'id': 'T4', 'status': 'TS'}})
            mauvaise = self._post('airtel_money', {
                'transaction': {'id': 'T4', 'status': 'TS'},
                'signature': jwt.encode({'transaction': {'id': 'T4', 'status': 'TS'}}, 'autre', algorithm='HS256'),
            })
            tx.refresh_from_db()
            self.assertEqual(tx.status, PaymentTransaction.PENDING)

            jeton = jwt.encode({'transaction': {'id': 'T4', 'status': 'TS'}}, 'secret-airtel', algorithm='HS256')
            valide = self._post('airtel_money', {}, HTTP_X_WEBHOOK_SIGNATURE=jeton)

        self.assertEqual(sans_signature.status_code, 400)
        self.assertEqual(mauvaise.status_code, 400)
        self.assertEqual(valide.status_code, 200)
        tx.refresh_from_db()
        self.assertEqual(tx.status, PaymentTransaction.COMPLETED)

    def test_paiement_recu_pour_abonnement_refuse(self):
        tx = enregistrer_transaction(self.abonnement, 'airtel_money', 'T5', 'mobile_money')
        Abonnement.objects.filter(pk=self.abonnement.pk).update(
            statut_paiement=Abonnement.REFUSE, statut=Abonnement.REFUSE, est_actif=False)

        response = self._post('airtel_money', {'transaction': {'id': 'T5', 'status': 'TS'}})

        self.assertEqual(response.status_code, 200)
        tx.refresh_from_db()
        self.assertEqual(tx.status, PaymentTransaction.COMPLETED)
        self.abonnement.refresh_from_db()
        self.assertEqual(self.abonnement.statut_paiement, Abonnement.REFUSE)


@override_settings(STRIPE_SECRET='sk_test_x', STRIPE_WEBHOOK_SECRET=STRIPE_SECRET_WEBHOOK)
class WebhookStripeTests(ActivationsMixin, TestCase):

    def setUp(self):
        self.restaurant, self.admin, self.abonnement = creer_restaurant(mode=Abonnement.CARTE_BANCAIRE)
        self.url = reverse('webhook_stripe')

    def _evenement(self, type_evenement='checkout.session.completed', objet=None):
        objet = objet or {
            'id': 'cs_test_1',
            'object': 'checkout.session',
            'payment_intent': 'pi_test_1',
            'payment_status': 'paid',
            'metadata': {'abonnement_id': str(self.abonnement.pk)},
        }
        return json.dumps({'id': 'evt_1', 'object': 'event', 'type': type_evenement,
                           'data': {'object': objet}})

    def _post(self, payload, signature=None):
        extra = {'HTTP_STRIPE_SIGNATURE': signature} if signature else {}
        return self.client.post(self.url, data=payload, content_type='application/json', **extra)

    def test_signature_manquante(self):
        response = self._post(self._evenement())

        self.assertEqual(response.status_code, 400)
        self.assertFalse(PaymentTransaction.objects.exists())
        self.abonnement.refresh_from_db()
        self.assertEqual(self.abonnement.statut_paiement, Abonnement.EN_ATTENTE)

    def test_signature_invalide(self):
        payload = self._evenement()
        response = self._post(payload, signer_stripe(payload, 'whsec_autre'))

        self.assertEqual(response.status_code, 400)
        self.assertFalse(PaymentTransaction.objects.exists())

    @override_settings(STRIPE_WEBHOOK_SECRET='')
    def test_secret_non_configure(self):
        payload = self._evenement()
        response = self._post(payload, signer_stripe(payload, STRIPE_SECRET_WEBHOOK))
        self.assertEqual(response.status_code, 400)

    def test_checkout_session_completed(self):
        payload = self._evenement()
        response = self._post(payload, signer_stripe(payload, STRIPE_SECRET_WEBHOOK))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'received': True})
        tx = PaymentTransaction.objects.get(provider='stripe', transaction_id='cs_test_1')
        self.assertEqual(tx.status, PaymentTransaction.COMPLETED)
        self.abonnement.refresh_from_db()
        self.assertEqual(self.abonnement.statut_paiement, Abonnement.VALIDE)
        self.assertEqual(self.abonnement.numero_transaction, 'pi_test_1')
        self.admin.refresh_from_db()
        self.assertTrue(self.admin.is_active)

    def test_evenement_rejoue(self):
        payload = self._evenement()
        self._post(payload, signer_stripe(payload, STRIPE_SECRET_WEBHOOK))
        response = self._post(payload, signer_stripe(payload, STRIPE_SECRET_WEBHOOK))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(PaymentTransaction.objects.filter(provider='stripe').count(), 1)

    def test_payment_intent_echoue(self):
        tx = enregistrer_transaction(self.abonnement, 'stripe', 'pi_test_2', 'carte_bancaire')
        payload = self._evenement('payment_intent.payment_failed', {
            'id': 'pi_test_2', 'object': 'payment_intent',
            'last_payment_error': {'message': 'Carte refusée'},
            'metadata': {'abonnement_id': str(self.abonnement.pk)},
        })
        response = self._post(payload, signer_stripe(payload, STRIPE_SECRET_WEBHOOK))

        self.assertEqual(response.status_code, 200)
        tx.refresh_from_db()
        self.assertEqual(tx.status, PaymentTransaction.FAILED)
        self.assertEqual(tx.failure_reason, 'Carte refusée')

    def test_verification_puis_webhook_une_seule_activation(self):
        enregistrer_transaction(self.abonnement, 'stripe', 'cs_test_1', 'carte_bancaire')
        session = mock.Mock(id='cs_test_1', payment_status='paid', payment_intent='pi_test_1')

        with mock.patch('paiement.providers.carte.stripe.checkout.Session.retrieve', return_value=session):
            self.assertTrue(StripeProvider().verify_payment('cs_test_1')['success'])

        activations = self.ecouter_activations()
        payload = self._evenement()
        response = self._post(payload, signer_stripe(payload, STRIPE_SECRET_WEBHOOK))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(activations, [])
        tx = PaymentTransaction.objects.get(provider='stripe', transaction_id='cs_test_1')
        self.assertEqual(tx.status, PaymentTransaction.COMPLETED)

    def test_abonnement_id_non_numerique(self):
        payload = self._evenement(objet={
            'id': 'cs_test_abc', 'object': 'checkout.session', 'payment_status': 'paid',
            'metadata': {'abonnement_id': 'abc'},
        })
        response = self._post(payload, signer_stripe(payload, STRIPE_SECRET_WEBHOOK))

        self.assertEqual(response.status_code, 400)
        self.assertIn('error', response.json())
        self.assertFalse(PaymentTransaction.objects.exists())
        self.abonnement.refresh_from_db()
        self.assertEqual(self.abonnement.statut_paiement, Abonnement.EN_ATTENTE)

    def test_objet_sans_identifiant(self):
        payload = self._evenement(objet={
            'object': 'checkout.session', 'payment_status': 'paid',
            'metadata': {'abonnement_id': str(self.abonnement.pk)},
        })
        response = self._post(payload, signer_stripe(payload, STRIPE_SECRET_WEBHOOK))

        self.assertEqual(response.status_code, 400)
        self.assertIn('error', response.json())
        self.assertFalse(PaymentTransaction.objects.exists())

    def test_erreur_inattendue_repond_400(self):
        payload = self._evenement()
        with mock.patch.object(StripeProvider, 'handle_webhook', side_effect=RuntimeError('boom')):
            response = self._post(payload, signer_stripe(payload, STRIPE_SECRET_WEBHOOK))

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': 'Webhook processing failed'})


@override_settings(MOBILE_MONEY=MOBILE_MONEY_TEST)
class WebhookMobileMoneyErreurTests(TestCase):

    def test_erreur_inattendue_repond_400(self):
        url = reverse('webhook_mobile_money', kwargs={'provider': 'airtel_money'})
        with mock.patch('paiement.views.traiter_webhook_mobile_money', side_effect=RuntimeError('boom')):
            response = self.client.post(
                url, data=json.dumps({'transaction': {'id': 'T1', 'status': 'TS'}}),
                content_type='application/json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': 'Webhook processing failed'})
