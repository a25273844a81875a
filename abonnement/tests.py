from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.core import mail
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from paiement.exceptions import ValidationPaiementError
from paiement.tests.base import creer_restaurant, creer_super_admin
from restaurant.models import Restaurant

from . import tasks
from .models import Abonnement, Facture
from .otp import generer_otp, verifier_otp
from .services import (
    abonnements_expirant,
    changer_mode_paiement,
    changer_plan,
    confirmer_paiement,
    creer_abonnement,
    generer_facture,
    get_abonnement_courant,
)


class AbonnementCourantTests(TestCase):

    def setUp(self):
        self.restaurant, self.admin, self.abonnement = creer_restaurant()

    def test_creation(self):
        self.assertEqual(self.abonnement.statut_paiement, Abonnement.EN_ATTENTE)
        self.assertEqual(self.abonnement.statut, Abonnement.ACTIF)
        self.assertEqual(self.abonnement.montant_mensuel, Decimal('50000'))
        self.assertEqual(self.abonnement.date_fin, self.abonnement.date_debut + timedelta(days=30))
        self.assertIsNone(self.abonnement.otp_code)

    def test_creation_mobile_money_emet_un_otp(self):
        abonnement = creer_abonnement(self.restaurant, 'medium', Abonnement.MOBILE_MONEY)
        self.assertRegex(abonnement.otp_code, r'^[0-9]{6}$')
        self.assertGreater(abonnement.otp_expires_at, timezone.now())

    def test_plan_inconnu(self):
        with self.assertRaises(ValidationPaiementError):
            creer_abonnement(self.restaurant, 'gold', Abonnement.ESPECE)

    def test_le_pointeur_suit_le_dernier_abonnement(self):
        nouveau = creer_abonnement(self.restaurant, 'premium', Abonnement.CARTE_BANCAIRE)

        self.assertEqual(get_abonnement_courant(self.restaurant.pk), nouveau)
        self.restaurant.refresh_from_db()
        self.assertEqual(self.restaurant.abonnement_courant_id, nouveau.pk)

    def test_modification_deplace_le_pointeur(self):
        creer_abonnement(self.restaurant, 'premium', Abonnement.CARTE_BANCAIRE)
        changer_mode_paiement(self.abonnement.pk, Abonnement.ESPECE)
        self.assertEqual(get_abonnement_courant(self.restaurant.pk), self.abonnement)

    def test_repli_sans_pointeur(self):
        nouveau = creer_abonnement(self.restaurant, 'medium', Abonnement.ESPECE)
        Restaurant.objects.filter(pk=self.restaurant.pk).update(abonnement_courant=None)
        Abonnement.objects.filter(pk=self.abonnement.pk).update(
            updated_at=timezone.now() + timedelta(minutes=1))

        self.assertEqual(get_abonnement_courant(self.restaurant.pk).pk, self.abonnement.pk)

        Abonnement.objects.filter(pk=nouveau.pk).update(updated_at=Abonnement.objects.get(
            pk=self.abonnement.pk).updated_at)
        self.assertEqual(get_abonnement_courant(self.restaurant.pk).pk, nouveau.pk)

    def test_restaurant_sans_abonnement(self):
        autre = Restaurant.objects.create(nom='Vide')
        self.assertIsNone(get_abonnement_courant(autre.pk))


class ModePaiementTests(TestCase):

    def setUp(self):
        self.restaurant, self.admin, self.abonnement = creer_restaurant(mode=Abonnement.ESPECE)

    def test_changement_remet_en_attente(self):
        confirmer_paiement(self.abonnement, 'CASH-1')

        abonnement = changer_mode_paiement(self.abonnement.pk, Abonnement.CARTE_BANCAIRE)

        self.assertEqual(abonnement.mode_paiement, Abonnement.CARTE_BANCAIRE)
        self.assertEqual(abonnement.statut_paiement, Abonnement.EN_ATTENTE)
        self.assertIsNone(abonnement.otp_code)

    def test_mobile_money_emet_puis_efface_l_otp(self):
        abonnement = changer_mode_paiement(self.abonnement.pk, Abonnement.MOBILE_MONEY)
        self.assertIsNotNone(abonnement.otp_code)

        abonnement = changer_mode_paiement(self.abonnement.pk, Abonnement.ESPECE)
        self.assertIsNone(abonnement.otp_code)
        self.assertIsNone(abonnement.otp_expires_at)

    def test_mode_inconnu(self):
        with self.assertRaises(ValidationPaiementError):
            changer_mode_paiement(self.abonnement.pk, 'cheque')

    def test_changer_plan(self):
        abonnement = changer_plan(self.abonnement.pk, 'premium')

        self.assertEqual(abonnement.plan, 'premium')
        self.assertEqual(abonnement.montant_mensuel, Decimal('200000'))
        self.assertEqual(abonnement.statut_paiement, Abonnement.EN_ATTENTE)


class OtpTests(TestCase):

    def setUp(self):
        self.restaurant, self.admin, self.abonnement = creer_restaurant(mode=Abonnement.MOBILE_MONEY)

    def test_code_valide(self):
        code = generer_otp(self.abonnement)
        self.assertTrue(verifier_otp(self.abonnement, code))
        # la vérification n'efface pas le code
        self.assertTrue(verifier_otp(self.abonnement, code))

    def test_code_expire(self):
        code = generer_otp(self.abonnement)
        self.abonnement.otp_expires_at = timezone.now() - timedelta(seconds=1)
        self.assertFalse(verifier_otp(self.abonnement, code))

    def test_nouveau_code_remplace_l_ancien(self):
        ancien = generer_otp(self.abonnement)
        nouveau = generer_otp(self.abonnement)
        if ancien != nouveau:
            self.assertFalse(verifier_otp(self.abonnement, ancien))
        self.assertTrue(verifier_otp(self.abonnement, nouveau))

    def test_code_vide(self):
        generer_otp(self.abonnement)
        self.assertFalse(verifier_otp(self.abonnement, ''))
        self.assertFalse(verifier_otp(self.abonnement, None))


class ConfirmationPaiementTests(TestCase):

    def setUp(self):
        self.restaurant, self.admin, self.abonnement = creer_restaurant()

    def test_confirmation_une_seule_fois(self):
        with mock.patch.object(tasks.notifier_paiement_confirme, 'delay') as delay:
            with self.captureOnCommitCallbacks(execute=True):
                premiere = confirmer_paiement(self.abonnement, 'REF-1')
            with self.captureOnCommitCallbacks(execute=True):
                seconde = confirmer_paiement(self.abonnement, 'REF-2')

        self.assertTrue(premiere)
        self.assertFalse(seconde)
        delay.assert_called_once_with(self.abonnement.pk, 'REF-1')
        self.abonnement.refresh_from_db()
        self.assertEqual(self.abonnement.numero_transaction, 'REF-1')
        self.assertIsNotNone(self.abonnement.date_paiement)
        self.admin.refresh_from_db()
        self.assertTrue(self.admin.is_active)

    def test_abonnement_refuse_non_confirme(self):
        Abonnement.objects.filter(pk=self.abonnement.pk).update(statut_paiement=Abonnement.REFUSE)

        self.assertFalse(confirmer_paiement(self.abonnement, 'REF-3'))
        self.assertEqual(self.abonnement.statut_paiement, Abonnement.REFUSE)
        self.admin.refresh_from_db()
        self.assertFalse(self.admin.is_active)


@override_settings(FACTURE_TAUX_TVA='0.18')
class FactureTests(TestCase):

    def setUp(self):
        self.restaurant, self.admin, self.abonnement = creer_restaurant(plan='simple')

    def test_tva_et_echeance(self):
        facture = generer_facture(self.abonnement)

        self.assertEqual(facture.amount, Decimal('50000'))
        self.assertEqual(facture.tax_amount, Decimal('9000.00'))
        self.assertEqual(facture.total_amount, Decimal('59000.00'))
        self.assertEqual(facture.due_date, facture.issue_date + timedelta(days=7))
        self.assertEqual(facture.status, 'sent')
        self.assertRegex(facture.invoice_number, r'^INV-[0-9]{8}-[0-9A-F]{8}$')
        self.assertEqual(len(facture.line_items), 1)

    def test_facture_payee(self):
        confirmer_paiement(self.abonnement, 'REF')
        self.abonnement.refresh_from_db()

        facture = generer_facture(self.abonnement)

        self.assertEqual(facture.status, 'paid')
        self.assertTrue(facture.is_paid())
        self.assertIsNotNone(facture.paid_at)


class ExpirationTests(TestCase):

    def setUp(self):
        self.restaurant, self.admin, self.abonnement = creer_restaurant()
        self.aujourd_hui = timezone.localdate()

    def _date_fin(self, jours):
        Abonnement.objects.filter(pk=self.abonnement.pk).update(
            date_fin=self.aujourd_hui + timedelta(days=jours))

    def test_expire_bientot(self):
        self._date_fin(3)
        notifs = abonnements_expirant(7)

        self.assertEqual(len(notifs), 1)
        self.assertEqual(notifs[0]['type'], 'expiring')
        self.assertEqual(notifs[0]['days_until_expiration'], 3)

    def test_deja_expire(self):
        self._date_fin(-2)
        notifs = abonnements_expirant(7)
        self.assertEqual([n['type'] for n in notifs], ['expired'])

    def test_hors_fenetre_ou_suspendu(self):
        self._date_fin(20)
        self.assertEqual(abonnements_expirant(7), [])

        self._date_fin(2)
        Abonnement.objects.filter(pk=self.abonnement.pk).update(statut=Abonnement.SUSPENDU)
        self.assertEqual(abonnements_expirant(7), [])

    def test_tache_notifications(self):
        self._date_fin(1)
        envoyes = tasks.notifier_abonnements_expirant(7)

        self.assertEqual(envoyes, 1)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn('resto@example.com', mail.outbox[0].to)


@override_settings(PAYMENT_ADMIN_EMAIL='plateforme@example.com')
class TachesMailTests(TestCase):

    def setUp(self):
        self.restaurant, self.admin, self.abonnement = creer_restaurant(mode=Abonnement.MOBILE_MONEY)

    def test_envoi_otp(self):
        self.assertTrue(tasks.envoyer_otp(self.abonnement.pk))
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(self.abonnement.otp_code, mail.outbox[0].body)

    def test_envoi_otp_sans_code(self):
        Abonnement.objects.filter(pk=self.abonnement.pk).update(otp_code=None)
        self.assertFalse(tasks.envoyer_otp(self.abonnement.pk))
        self.assertEqual(mail.outbox, [])

    def test_mail_de_confirmation(self):
        tasks.notifier_paiement_confirme(self.abonnement.pk, 'AIR-123')

        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertIn('plateforme@example.com', message.to)
        self.assertIn('admin@example.com', message.to)
        self.assertIn('AIR-123', message.body)


class AbonnementAPITests(APITestCase):

    def setUp(self):
        self.restaurant, self.admin, self.abonnement = creer_restaurant()
        self.admin.is_active = True
        self.admin.save(update_fields=['is_active'])
        self.client.force_authenticate(user=self.admin)

    def test_plans(self):
        response = self.client.get(reverse('abonnement_api:plans'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([p['slug'] for p in response.data], ['simple', 'medium', 'premium'])
        self.assertEqual(response.data[1]['montant_mensuel'], '100000.00')

    def test_abonnement_courant(self):
        response = self.client.get(reverse('abonnement_api:courant'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id'], self.abonnement.pk)
        self.assertNotIn('otp_code', response.data)

    def test_changer_plan(self):
        response = self.client.post(
            reverse('abonnement_api:changer_plan'), {'plan': 'medium', 'mode_paiement': 'carte_bancaire'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['abonnement']['plan'], 'medium')
        self.assertEqual(response.data['abonnement']['mode_paiement'], 'carte_bancaire')

    def test_facture(self):
        response = self.client.post(reverse('abonnement_api:facture', kwargs={'pk': self.abonnement.pk}))

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Facture.objects.get().abonnement, self.abonnement)

    def test_facture_autre_restaurant(self):
        _, _, autre = creer_restaurant(nom='Autre')
        response = self.client.post(reverse('abonnement_api:facture', kwargs={'pk': autre.pk}))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_suspension_reservee_au_super_admin(self):
        url = reverse('abonnement_api:admin_suspendre', kwargs={'pk': self.abonnement.pk})
        self.assertEqual(self.client.post(url).status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=creer_super_admin())
        response = self.client.post(url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['statut'], Abonnement.SUSPENDU)
        self.assertFalse(response.data['est_actif'])

        response = self.client.post(reverse('abonnement_api:admin_activer', kwargs={'pk': self.abonnement.pk}))
        self.assertEqual(response.data['statut'], Abonnement.ACTIF)
