import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('abonnement', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='PaymentTransaction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('provider', models.CharField(choices=[('orange_money', 'Orange Money'), ('airtel_money', 'Airtel Money'), ('stripe', 'Stripe'), ('espece', 'Espèce')], max_length=32)),
                ('transaction_id', models.CharField(max_length=191)),
                ('payment_method', models.CharField(max_length=32)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=15)),
                ('currency', models.CharField(default='USD', max_length=3)),
                ('status', models.CharField(choices=[('pending', 'En attente'), ('completed', 'Terminée'), ('failed', 'Échouée')], default='pending', max_length=16)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('customer_email', models.EmailField(blank=True, max_length=254, null=True)),
                ('customer_phone', models.CharField(blank=True, max_length=20, null=True)),
                ('failure_reason', models.TextField(blank=True, null=True)),
                ('processed_at', models.DateTimeField(blank=True, null=True)),
                ('created', models.DateTimeField(auto_now_add=True)),
                ('updated', models.DateTimeField(auto_now=True)),
                ('abonnement', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='transactions', to='abonnement.abonnement')),
            ],
            options={
                'indexes': [models.Index(fields=['abonnement', 'status'], name='paiement_tx_abo_status_idx')],
            },
        ),
        migrations.AddConstraint(
            model_name='paymenttransaction',
            constraint=models.UniqueConstraint(fields=('provider', 'transaction_id'), name='unique_provider_transaction'),
        ),
    ]
