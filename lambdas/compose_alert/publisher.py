# lambdas/compose_alert/publisher.py
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..common.models import ComposedAlert


class SnsAlertPublisher:
    """
    Publishes composed alerts to the notification topic. The topic fans each
    message out to its email subscribers; delivery is SNS's responsibility.
    """

    def __init__(self, topic_arn: str, sns_client=None, region_name: Optional[str] = None):
        if not topic_arn:
            raise ValueError("A notification topic ARN is required.")
        self.topic_arn = topic_arn
        self.sns_client = sns_client or boto3.client("sns", region_name=region_name)

    def publish(self, alert: ComposedAlert) -> str:
        """
        Sends exactly one message to the topic.

        Returns:
            The MessageId from the SNS response.

        Raises:
            ClientError, BotoCoreError: If the publish call fails.
        """
        try:
            response = self.sns_client.publish(
                TopicArn=self.topic_arn,
                Subject=alert.subject,
                Message=alert.message,
            )
        except (ClientError, BotoCoreError) as e:
            print(f"❌ Could not publish alert to {self.topic_arn}: {e}")
            raise

        message_id = response.get("MessageId")
        print(f"✅ Alert published to SNS. MessageId: {message_id}")
        return message_id

    __call__ = publish
