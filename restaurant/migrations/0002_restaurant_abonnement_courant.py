import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('restaurant', '0001_initial'),
        ('abonnement', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='restaurant',
            name='abonnement_courant',
            field=models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='abonnement.abonnement'),
        ),
    ]
