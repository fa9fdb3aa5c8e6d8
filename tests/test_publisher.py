# tests/test_publisher.py
import unittest
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError

from lambdas.common.models import ComposedAlert
from lambdas.compose_alert.publisher import SnsAlertPublisher

TOPIC_ARN = "arn:aws:sns:us-east-1:123456789012:lambda-func-log-notification-topic"
ALERT = ComposedAlert(subject="[Alert] subject", message="body")


class TestSnsAlertPublisher(unittest.TestCase):

    def test_publishes_subject_and_message_to_topic(self):
        sns_client = MagicMock()
        sns_client.publish.return_value = {"MessageId": "mid-1"}

        message_id = SnsAlertPublisher(TOPIC_ARN, sns_client=sns_client).publish(ALERT)

        self.assertEqual(message_id, "mid-1")
        sns_client.publish.assert_called_once_with(TopicArn=TOPIC_ARN, Subject=ALERT.subject, Message=ALERT.message)

    @patch('lambdas.compose_alert.publisher.boto3.client')
    def test_creates_sns_client_when_none_given(self, mock_boto_client):
        SnsAlertPublisher(TOPIC_ARN, region_name="eu-west-1")

        mock_boto_client.assert_called_once_with("sns", region_name="eu-west-1")

    def test_requires_topic_arn(self):
        with self.assertRaises(ValueError):
            SnsAlertPublisher("", sns_client=MagicMock())

    def test_client_error_is_reraised(self):
        sns_client = MagicMock()
        sns_client.publish.side_effect = ClientError(
            {"Error": {"Code": "AuthorizationError", "Message": "not allowed"}}, "Publish"
        )

        with self.assertRaises(ClientError):
            SnsAlertPublisher(TOPIC_ARN, sns_client=sns_client)(ALERT)


if __name__ == '__main__':
    unittest.main()
